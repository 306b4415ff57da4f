"""Shared entities, schemas and fixtures for the RoadORM tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

import pytest

from roadorm_core.connection import DatabaseConfig, SQLiteConnection
from roadorm_core.executor import CommandExecutor, ExecutionContext
from roadorm_core.schema import CascadeType, Schema, Table


# =============================================================================
# Entities
# =============================================================================


@dataclass(eq=False)
class Husband:
    surname: str
    name: str
    wife: Optional["Wife"] = None


@dataclass(eq=False)
class Wife:
    surname: str
    name: str
    husband: Optional[Husband] = None


@dataclass(eq=False)
class Professor:
    surname: str
    faculty: str
    students: List["Student"] = field(default_factory=list)


@dataclass(eq=False)
class Student:
    surname: str
    student_index: int
    professor: Optional[Professor] = None


@dataclass(eq=False)
class Pupil:
    name: str
    courses: List["Course"] = field(default_factory=list)


@dataclass(eq=False)
class Course:
    code: str
    title: str
    pupils: List[Pupil] = field(default_factory=list)


@dataclass(eq=False)
class Person:
    name: str
    friends: List["Person"] = field(default_factory=list)


# =============================================================================
# Schemas
# =============================================================================


def build_marriages(cascade: CascadeType = CascadeType.ALL) -> Schema:
    husbands = Table("husbands", Husband)
    husbands.varchar("surname", 255, primary_key=True)
    husbands.varchar("name", 255)

    wives = Table("wives", Wife)
    wives.varchar("surname", 255, primary_key=True)
    wives.varchar("name", 255)

    husbands.one_to_one(wives, cascade=cascade, attribute="wife")
    wives.one_to_one(husbands, cascade=cascade, attribute="husband")
    return Schema([husbands, wives], name="marriages")


def build_university(professor_cascade: CascadeType = CascadeType.UPDATE) -> Schema:
    professors = Table("professors", Professor)
    professors.varchar("surname", 255, primary_key=True)
    professors.varchar("faculty", 255, primary_key=True)

    students = Table("students", Student)
    students.varchar("surname", 255, primary_key=True)
    students.integer("student_index", primary_key=True)

    students.many_to_one(professors, cascade=CascadeType.NONE, attribute="professor")
    professors.one_to_many(students, cascade=professor_cascade)
    return Schema([professors, students], name="university")


def build_enrollment(cascade: CascadeType = CascadeType.ALL, purge_orphans: bool = True) -> Schema:
    pupils = Table("pupils", Pupil)
    pupils.varchar("name", 100, primary_key=True)

    courses = Table("courses", Course)
    courses.varchar("code", 20, primary_key=True)
    courses.varchar("title", 200)

    pupils.many_to_many(courses, cascade=cascade, attribute="courses", join_table="enrollments",
                        purge_orphans=purge_orphans)
    courses.many_to_many(pupils, attribute="pupils", join_table="enrollments")
    return Schema([pupils, courses], name="enrollment")


def build_friendships(cascade: CascadeType = CascadeType.NONE) -> Schema:
    people = Table("people", Person)
    people.varchar("name", 100, primary_key=True)

    people.many_to_many(people, cascade=cascade, attribute="friends", join_table="friends")
    return Schema([people], name="friendships")


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def connection(tmp_path):
    conn = SQLiteConnection(DatabaseConfig(path=tmp_path / "test.db"))
    yield conn
    conn.close()


@pytest.fixture
def context(connection):
    return ExecutionContext(connection)


@pytest.fixture
def executor(context):
    return CommandExecutor(context)


@pytest.fixture
def marriages(executor):
    schema = build_marriages()
    executor.create_all(schema)
    return schema


@pytest.fixture
def university(executor):
    schema = build_university()
    executor.create_all(schema)
    return schema


@pytest.fixture
def enrollment(executor):
    schema = build_enrollment()
    executor.create_all(schema)
    return schema


def count_rows(connection, table: str) -> int:
    return connection.execute(f"SELECT COUNT(*) AS n FROM {table}").scalar()
