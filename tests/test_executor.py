"""Tests for the relationship-aware command executor."""

from dataclasses import dataclass, field
from typing import Optional

import pytest

from conftest import (
    Course, Husband, Person, Professor, Pupil, Student, Wife,
    build_enrollment, build_friendships, build_university, count_rows,
)
from roadorm_core.connection import DatabaseConfig, SQLiteConnection
from roadorm_core.errors import (
    DuplicateKeyError, ForeignKeyNotFoundError, InvalidValueError, PrimaryKeyMismatchError, UsageError,
)
from roadorm_core.executor import CommandExecutor, ExecutionContext
from roadorm_core.query.builder import ConflictPolicy
from roadorm_core.schema import CascadeType, Schema, Table


def professor_key(professors, surname, faculty):
    return professors.column("surname").eq(surname), professors.column("faculty").eq(faculty)


def student_key(students, surname, index):
    return students.column("surname").eq(surname), students.column("student_index").eq(index)


@pytest.fixture
def staffed(executor, university):
    professors = university.get_table("professors")
    students = university.get_table("students")

    mrozek = Professor("Mrozek", "WIMIR")
    nowak = Professor("Nowak", "WEAIIB")
    executor.persist(professors, mrozek, nowak)
    executor.persist(
        students,
        Student("Aaa", 111, mrozek),
        Student("Baa", 222, mrozek),
        Student("Caa", 333, nowak),
        Student("Daa", 444, nowak),
    )
    return professors, students


# =============================================================================
# find
# =============================================================================


class TestFind:
    def test_missing_row_is_none(self, executor, university):
        professors = university.get_table("professors")
        assert executor.find(professors, *professor_key(professors, "Nobody", "WIMIR")) is None

    def test_key_order_does_not_matter(self, executor, staffed):
        professors, _ = staffed
        faculty, surname = professors.column("faculty").eq("WIMIR"), professors.column("surname").eq("Mrozek")

        found = executor.find(professors, faculty, surname)

        assert found.surname == "Mrozek"
        assert found.faculty == "WIMIR"

    def test_loads_one_to_many_collection(self, executor, staffed):
        professors, _ = staffed

        found = executor.find(professors, *professor_key(professors, "Mrozek", "WIMIR"))

        assert sorted(s.surname for s in found.students) == ["Aaa", "Baa"]

    def test_loads_many_to_one_parent(self, executor, staffed):
        _, students = staffed

        found = executor.find(students, *student_key(students, "Caa", 333))

        assert found.student_index == 333
        assert found.professor.surname == "Nowak"
        assert found.professor.faculty == "WEAIIB"

    def test_related_entities_are_one_level_deep(self, executor, staffed):
        _, students = staffed

        found = executor.find(students, *student_key(students, "Aaa", 111))

        assert found.professor.students == []

    @pytest.mark.parametrize("key_columns", [["surname"], ["surname", "faculty", "surname"]])
    def test_key_mismatch_raises_before_sql(self, executor, connection, university, key_columns):
        professors = university.get_table("professors")
        key = [professors.column(name).eq("x") for name in key_columns]
        before = connection.query_count

        with pytest.raises(PrimaryKeyMismatchError):
            executor.find(professors, *key)

        assert connection.query_count == before

    def test_key_from_another_table_raises(self, executor, university):
        professors = university.get_table("professors")
        students = university.get_table("students")

        with pytest.raises(PrimaryKeyMismatchError):
            executor.find(professors, students.column("surname").eq("Aaa"), professors.column("faculty").eq("WIMIR"))


# =============================================================================
# One-to-one scenario
# =============================================================================


class TestMarriages:
    @pytest.fixture
    def married(self, executor, marriages):
        husbands = marriages.get_table("husbands")
        wife = Wife("Kowalska", "Anna")
        husband = Husband("Kowalski", "Jan", wife)
        wife.husband = husband
        executor.persist(husbands, husband)
        return marriages

    def test_persist_writes_both_sides(self, connection, married):
        assert count_rows(connection, "husbands") == 1
        assert count_rows(connection, "wives") == 1

    def test_find_resolves_wife(self, executor, married):
        husbands = married.get_table("husbands")

        found = executor.find(husbands, husbands.column("surname").eq("Kowalski"))

        assert found.name == "Jan"
        assert found.wife.surname == "Kowalska"
        assert found.wife.name == "Anna"

    def test_delete_cascades_to_wife(self, executor, married):
        husbands = married.get_table("husbands")
        wives = married.get_table("wives")

        assert executor.delete(husbands, husbands.column("surname").eq("Kowalski")) is True

        assert executor.find(husbands, husbands.column("surname").eq("Kowalski")) is None
        assert executor.find(wives, wives.column("surname").eq("Kowalska")) is None

    def test_delete_missing_row_is_false(self, executor, married):
        husbands = married.get_table("husbands")
        assert executor.delete(husbands, husbands.column("surname").eq("Nowak")) is False


# =============================================================================
# Delete cascades and orphans
# =============================================================================


class TestDelete:
    def test_nullify_leaves_children_as_orphans(self, executor, connection, staffed):
        professors, students = staffed

        assert executor.delete(professors, *professor_key(professors, "Mrozek", "WIMIR"))

        assert count_rows(connection, "students") == 4
        orphans = executor.find_orphans(students, professors)
        assert sorted(s.surname for s in orphans) == ["Aaa", "Baa"]

        survivor = executor.find(students, *student_key(students, "Aaa", 111))
        assert survivor.professor is None

    def test_slay_orphans(self, executor, staffed):
        professors, students = staffed
        executor.delete(professors, *professor_key(professors, "Mrozek", "WIMIR"))

        assert executor.slay_orphans(students, professors) == 2
        assert executor.find_orphans(students, professors) == []
        assert executor.slay_orphans(students, professors) == 0

    @pytest.mark.parametrize("cascade", [CascadeType.ALL, CascadeType.DELETE])
    def test_cascading_delete_removes_children(self, executor, connection, cascade):
        schema = build_university(cascade)
        executor.create_all(schema)
        professors = schema.get_table("professors")
        students = schema.get_table("students")
        mrozek = Professor("Mrozek", "WIMIR")
        executor.persist(professors, mrozek)
        executor.persist(students, Student("Aaa", 111, mrozek), Student("Baa", 222, mrozek))

        executor.delete(professors, *professor_key(professors, "Mrozek", "WIMIR"))

        assert count_rows(connection, "students") == 0

    @pytest.mark.parametrize(
        "key_columns",
        [["surname"], ["surname", "student_index", "professors_surname"]],
        ids=["subset", "superset"],
    )
    def test_key_mismatch_raises_before_sql(self, executor, connection, staffed, key_columns):
        _, students = staffed
        key = [students.column(name).eq("Aaa") for name in key_columns]
        before = connection.query_count

        with pytest.raises(PrimaryKeyMismatchError):
            executor.delete(students, *key)

        assert connection.query_count == before
        assert count_rows(connection, "students") == 4

    def test_key_from_another_table_raises_before_sql(self, executor, connection, staffed):
        professors, students = staffed
        before = connection.query_count

        with pytest.raises(PrimaryKeyMismatchError):
            executor.delete(students, professors.column("surname").eq("Aaa"), students.column("student_index").eq(111))

        assert connection.query_count == before
        assert count_rows(connection, "students") == 4

    def test_orphans_without_foreign_key_raise(self, executor, staffed):
        professors, students = staffed

        with pytest.raises(ForeignKeyNotFoundError):
            executor.find_orphans(professors, students)
        with pytest.raises(LookupError):
            executor.slay_orphans(professors, students)


# =============================================================================
# update
# =============================================================================


class TestUpdate:
    def test_rekey_cascades_to_children(self, executor, staffed):
        professors, students = staffed
        nowak = executor.find(professors, *professor_key(professors, "Nowak", "WEAIIB"))

        updated = executor.update(professors, nowak, professors.column("surname").eq("Nowakowski"))

        assert updated.surname == "Nowakowski"
        assert updated.students == []
        child = executor.find(students, *student_key(students, "Caa", 333))
        assert child.professor.surname == "Nowakowski"
        assert executor.find(professors, *professor_key(professors, "Nowak", "WEAIIB")) is None

    @pytest.mark.parametrize("cascade", [CascadeType.NONE, CascadeType.DELETE])
    def test_rekey_without_update_cascade_nulls_children(self, executor, cascade):
        schema = build_university(cascade)
        executor.create_all(schema)
        professors = schema.get_table("professors")
        students = schema.get_table("students")
        nowak = Professor("Nowak", "WEAIIB")
        executor.persist(students, Student("Caa", 333, nowak))

        executor.update(professors, nowak, professors.column("faculty").eq("WFIIS"))

        orphans = executor.find_orphans(students, professors)
        assert [s.surname for s in orphans] == ["Caa"]

    def test_full_row_update_rewrites_foreign_key(self, executor, staffed):
        _, students = staffed
        student = executor.find(students, *student_key(students, "Aaa", 111))
        student.professor = None

        updated = executor.update(students, student)

        assert updated.professor is None
        assert executor.find_orphans(students, staffed[0])[0].surname == "Aaa"

    def test_missing_row_is_none(self, executor, university):
        professors = university.get_table("professors")
        ghost = Professor("Ghost", "WIMIR")

        assert executor.update(professors, ghost, professors.column("surname").eq("Spirit")) is None

    def test_invalid_value_rejected_before_sql(self, executor, connection, staffed):
        _, students = staffed
        student = executor.find(students, *student_key(students, "Aaa", 111))
        before = connection.query_count

        with pytest.raises(InvalidValueError) as excinfo:
            executor.update(students, student, students.column("student_index").eq("eleven"))

        assert connection.query_count == before
        assert "student_index" in str(excinfo.value)

    def test_foreign_column_is_usage_error(self, executor, staffed):
        professors, students = staffed

        with pytest.raises(UsageError):
            executor.update(professors, Professor("Mrozek", "WIMIR"), students.column("surname").eq("x"))

    def test_incomplete_key_is_usage_error(self, executor, staffed):
        professors, _ = staffed

        with pytest.raises(UsageError):
            executor.update(professors, Professor("Mrozek", None), professors.column("surname").eq("x"))


# =============================================================================
# persist
# =============================================================================


class TestPersist:
    def test_empty_persist_is_noop(self, executor, connection, university):
        before = connection.query_count
        assert executor.persist(university.get_table("professors")) == 0
        assert connection.query_count == before

    def test_children_are_written_after_parent(self, executor, connection, university):
        professors = university.get_table("professors")
        students = university.get_table("students")
        mrozek = Professor("Mrozek", "WIMIR", [Student("Aaa", 111), Student("Baa", 222)])

        executor.persist(professors, mrozek)

        assert count_rows(connection, "students") == 2
        assert executor.find_orphans(students, professors) == []

    def test_existing_parent_is_left_alone(self, executor, connection, staffed):
        professors, students = staffed
        mrozek = Professor("Mrozek", "WIMIR")

        executor.persist(students, Student("Eaa", 555, mrozek))

        assert count_rows(connection, "professors") == 2
        assert count_rows(connection, "students") == 5

    def test_duplicate_key_fails(self, executor, staffed):
        professors, _ = staffed

        with pytest.raises(DuplicateKeyError):
            executor.persist(professors, Professor("Mrozek", "WIMIR"))

    def test_ignore_policy_skips_duplicates(self, executor, connection, staffed):
        professors, _ = staffed

        inserted = executor.persist(
            professors,
            Professor("Mrozek", "WIMIR"),
            Professor("Kowal", "WIMIR"),
            on_conflict=ConflictPolicy.IGNORE,
        )

        assert inserted == 1
        assert count_rows(connection, "professors") == 3

    def test_invalid_values_rejected_before_sql(self, executor, connection, university):
        professors = university.get_table("professors")
        before = connection.query_count

        with pytest.raises(InvalidValueError) as excinfo:
            executor.persist(professors, Professor("x" * 300, "WIMIR"))

        assert connection.query_count == before
        assert excinfo.value.errors == ["Column surname: String too long (max 255)"]

    def test_missing_required_value_is_rejected(self, executor, connection, marriages):
        wives = marriages.get_table("wives")

        with pytest.raises(UsageError):
            executor.persist(wives, Wife("Nowak", None))

        assert count_rows(connection, "wives") == 0

    def test_update_policy_overwrites(self, executor, marriages):
        wives = marriages.get_table("wives")
        executor.persist(wives, Wife("Nowak", "Ewa"))

        executor.persist(wives, Wife("Nowak", "Maria"), on_conflict=ConflictPolicy.UPDATE)

        assert executor.find(wives, wives.column("surname").eq("Nowak")).name == "Maria"


# =============================================================================
# Many-to-many
# =============================================================================


class TestManyToMany:
    @pytest.fixture
    def enrolled(self, executor, enrollment):
        pupils = enrollment.get_table("pupils")
        math = Course("MAT1", "Mathematics")
        physics = Course("PHY1", "Physics")
        executor.persist(pupils, Pupil("Ala", [math, physics]), Pupil("Ola", [math]))
        return enrollment

    def test_persist_writes_join_rows(self, connection, enrolled):
        assert count_rows(connection, "enrollments") == 3
        assert count_rows(connection, "courses") == 2

    def test_find_loads_both_directions(self, executor, enrolled):
        pupils = enrolled.get_table("pupils")
        courses = enrolled.get_table("courses")

        ala = executor.find(pupils, pupils.column("name").eq("Ala"))
        math = executor.find(courses, courses.column("code").eq("MAT1"))

        assert sorted(c.code for c in ala.courses) == ["MAT1", "PHY1"]
        assert sorted(p.name for p in math.pupils) == ["Ala", "Ola"]

    def test_cascading_delete_purges_unlinked_targets(self, executor, connection, enrolled):
        pupils = enrolled.get_table("pupils")
        courses = enrolled.get_table("courses")

        executor.delete(pupils, pupils.column("name").eq("Ala"))

        assert count_rows(connection, "enrollments") == 1
        assert executor.find(courses, courses.column("code").eq("PHY1")) is None
        assert executor.find(courses, courses.column("code").eq("MAT1")) is not None

    def test_delete_without_purge_keeps_targets(self, executor, connection):
        schema = build_enrollment(CascadeType.ALL, purge_orphans=False)
        executor.create_all(schema)
        pupils = schema.get_table("pupils")
        executor.persist(pupils, Pupil("Ala", [Course("PHY1", "Physics")]))

        executor.delete(pupils, pupils.column("name").eq("Ala"))

        assert count_rows(connection, "enrollments") == 0
        assert count_rows(connection, "courses") == 1

    def test_non_cascading_delete_only_unlinks(self, executor, connection, enrolled):
        courses = enrolled.get_table("courses")

        executor.delete(courses, courses.column("code").eq("MAT1"))

        assert count_rows(connection, "enrollments") == 1
        assert count_rows(connection, "pupils") == 2

    def test_purge_spares_targets_never_linked(self, executor, enrolled):
        pupils = enrolled.get_table("pupils")
        courses = enrolled.get_table("courses")
        executor.persist(courses, Course("NEW1", "Astronomy"))

        executor.delete(pupils, pupils.column("name").eq("Ala"))

        assert executor.find(courses, courses.column("code").eq("NEW1")) is not None
        assert executor.find(courses, courses.column("code").eq("PHY1")) is None

    def test_rekey_updates_join_rows(self, executor, connection, enrolled):
        pupils = enrolled.get_table("pupils")
        ola = executor.find(pupils, pupils.column("name").eq("Ola"))

        executor.update(pupils, ola, pupils.column("name").eq("Olga"))

        olga = executor.find(pupils, pupils.column("name").eq("Olga"))
        assert [c.code for c in olga.courses] == ["MAT1"]


# =============================================================================
# Self-referencing many-to-many
# =============================================================================


class TestSelfReferencing:
    def _people(self, executor, cascade=CascadeType.NONE):
        schema = build_friendships(cascade)
        executor.create_all(schema)
        return schema.get_table("people")

    def _names(self, connection, table):
        return sorted(row["name"] for row in connection.execute(f"SELECT name FROM {table}"))

    def test_delete_unlinks_both_sides(self, executor, connection):
        people = self._people(executor)
        executor.persist(people, Person("Ola", [Person("Ala")]), Person("Ala", [Person("Ela")]))

        assert executor.delete(people, people.column("name").eq("Ala")) is True

        assert count_rows(connection, "friends") == 0
        assert self._names(connection, "people") == ["Ela", "Ola"]

    def test_rekey_updates_both_sides(self, executor):
        people = self._people(executor, CascadeType.ALL)
        ala = Person("Ala", [Person("Ula")])
        executor.persist(people, Person("Ola", [ala]), Person("Ela", [ala]))

        executor.update(people, ala, people.column("name").eq("Alicja"))

        ola = executor.find(people, people.column("name").eq("Ola"))
        alicja = executor.find(people, people.column("name").eq("Alicja"))
        assert [p.name for p in ola.friends] == ["Alicja"]
        assert [p.name for p in alicja.friends] == ["Ula"]

    def test_cascading_delete_purges_only_unlinked_friends(self, executor, connection):
        people = self._people(executor, CascadeType.ALL)
        ala = Person("Ala")
        executor.persist(people, Person("Ola", [ala, Person("Ula")]), Person("Ela", [ala]))

        assert executor.delete(people, people.column("name").eq("Ola")) is True

        assert self._names(connection, "people") == ["Ala", "Ela"]
        assert count_rows(connection, "friends") == 1


# =============================================================================
# Relation accessors
# =============================================================================


@dataclass(eq=False)
class Club:
    name: str


@dataclass(eq=False)
class Badge:
    club: Optional[Club] = None


@dataclass(eq=False)
class Member:
    login: str
    badge: Badge = field(default_factory=Badge)


def test_relation_with_custom_accessors(executor):
    clubs = Table("clubs", Club)
    clubs.varchar("name", 50, primary_key=True)
    members = Table("members", Member)
    members.varchar("login", 50, primary_key=True)
    members.many_to_one(
        clubs,
        attribute="club",
        getter=lambda member: member.badge.club,
        setter=lambda member, club: setattr(member.badge, "club", club),
    )
    executor.create_all(Schema([clubs, members]))

    executor.persist(members, Member("ola", Badge(Club("Chess"))))
    found = executor.find(members, members.column("login").eq("ola"))

    assert found.badge.club.name == "Chess"
    assert executor.find(clubs, clubs.column("name").eq("Chess")) is not None


# =============================================================================
# Transactions
# =============================================================================


class TestAtomicity:
    def _failing_persist(self, executor, schema):
        professors = schema.get_table("professors")
        students = schema.get_table("students")
        executor.create_all(schema)
        executor.persist(students, Student("Aaa", 111))

        with pytest.raises(DuplicateKeyError):
            executor.persist(students, Student("Aaa", 111, Professor("Kowal", "WIMIR")))
        return professors

    def test_failed_call_rolls_back(self, executor, connection):
        self._failing_persist(executor, build_university())
        assert count_rows(connection, "professors") == 0

    def test_non_atomic_call_keeps_partial_work(self, tmp_path):
        connection = SQLiteConnection(DatabaseConfig(path=tmp_path / "loose.db"))
        executor = CommandExecutor(ExecutionContext(connection, atomic=False))
        try:
            self._failing_persist(executor, build_university())
            assert count_rows(connection, "professors") == 1
        finally:
            connection.close()

    def test_calls_join_an_outer_transaction(self, executor, connection, university):
        professors = university.get_table("professors")

        with pytest.raises(RuntimeError):
            with connection.transaction():
                executor.persist(professors, Professor("Mrozek", "WIMIR"))
                raise RuntimeError("abort")

        assert count_rows(connection, "professors") == 0


def test_statement_log(tmp_path, university):
    connection = SQLiteConnection(DatabaseConfig(path=tmp_path / "logged.db"))
    log_file = tmp_path / "logs" / "sql.log"
    with ExecutionContext(connection, log_destination=str(log_file)) as context:
        executor = CommandExecutor(context)
        executor.create_all(university)
        executor.persist(university.get_table("professors"), Professor("Mrozek", "WIMIR"))
        assert executor.stats["statements_executed"] == 3

    lines = log_file.read_text(encoding="utf-8").splitlines()
    assert lines[-1].startswith("[")
    assert "INSERT INTO professors" in lines[-1]
