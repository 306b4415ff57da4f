"""Tests for the entity codec."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal as PyDecimal
from typing import Optional, Set

import pytest

from conftest import Husband, Professor, Student, Wife, build_marriages, build_university
from roadorm_core.codec import EntityCodec
from roadorm_core.errors import MappingError, UnsupportedTypeError
from roadorm_core.schema import Column, Table
from roadorm_core.types import DataType, SQLDialect


@dataclass
class Invoice:
    number: int
    issued: date
    amount: PyDecimal
    paid: bool
    note: Optional[str] = None


@pytest.fixture
def invoices():
    table = Table("invoices", Invoice)
    table.integer("number", primary_key=True)
    table.date("issued")
    table.decimal("amount", 10, 2)
    table.boolean("paid")
    table.text("note", nullable=True)
    return table


class TestRoundTrip:
    def test_scalars_survive(self, invoices):
        invoice = Invoice(7, date(2024, 3, 1), PyDecimal("19.99"), True, "net 30")
        codec = invoices.codec

        restored = codec.to_entity(codec.from_entity(invoice))

        assert restored == invoice

    def test_driver_values_are_decoded(self, invoices):
        row = {"number": "7", "issued": "2024-03-01", "amount": 19.5, "paid": 0, "note": None}

        invoice = invoices.codec.to_entity(row)

        assert invoice.number == 7
        assert invoice.issued == date(2024, 3, 1)
        assert invoice.amount == PyDecimal("19.5")
        assert invoice.paid is False

    def test_relations_are_reset(self):
        schema = build_university()
        professors = schema.get_table("professors")
        professor = Professor("Mrozek", "WIMIR", [Student("Aaa", 111)])

        restored = professors.codec.to_entity(professors.codec.from_entity(professor))

        assert restored.surname == "Mrozek"
        assert restored.students == []


class TestForeignKeys:
    def test_foreign_key_columns_come_from_related_entity(self):
        students = build_university().get_table("students")
        student = Student("Aaa", 111, Professor("Mrozek", "WIMIR"))

        values = students.codec.from_entity(student)

        assert list(values) == ["surname", "student_index", "professors_surname", "professors_faculty"]
        assert values["professors_surname"] == "Mrozek"
        assert values["professors_faculty"] == "WIMIR"

    def test_missing_relation_gives_nulls(self):
        students = build_university().get_table("students")

        values = students.codec.from_entity(Student("Aaa", 111))

        assert values["professors_surname"] is None
        assert values["professors_faculty"] is None

    def test_one_to_one_both_sides(self):
        schema = build_marriages()
        wife = Wife("Kowalska", "Anna")
        husband = Husband("Kowalski", "Jan", wife)
        wife.husband = husband

        assert schema.get_table("husbands").codec.from_entity(husband)["wives_surname"] == "Kowalska"
        assert schema.get_table("wives").codec.from_entity(wife)["husbands_surname"] == "Kowalski"

    def test_primary_key_values(self):
        professors = build_university().get_table("professors")
        assert professors.codec.primary_key_values(Professor("Mrozek", "WIMIR")) == ["Mrozek", "WIMIR"]


class TestCollections:
    def test_collection_kind_follows_default_factory(self):
        @dataclass(eq=False)
        class Team:
            name: str
            players: Set[str] = field(default_factory=set)

        @dataclass(eq=False)
        class Player:
            name: str

        teams = Table("teams", Team)
        teams.varchar("name", 50, primary_key=True)
        players = Table("players", Player)
        players.varchar("name", 50, primary_key=True)
        teams.one_to_many(players)

        team = teams.codec.to_entity({"name": "Wisla"})

        assert team.players == set()
        assert teams.codec.collection_factory("players") is set


class TestStructuralErrors:
    def test_table_without_entity(self):
        with pytest.raises(MappingError):
            EntityCodec(Table("bare"))

    def test_unmatched_required_parameter(self):
        @dataclass
        class Person:
            surname: str
            age: int

        table = Table("people", Person)
        table.varchar("surname", 50, primary_key=True)

        with pytest.raises(MappingError, match="age"):
            table.codec

    def test_unsupported_column_type(self):
        class Blob(DataType):
            def validate(self, value):
                return []

            def serialize(self, value):
                return value

            def deserialize(self, value):
                return value

            def sql_type(self, dialect=SQLDialect.STANDARD):
                return "BLOB"

        @dataclass
        class Document:
            body: bytes

        table = Table("documents", Document, Column("body", Blob(), primary_key=True))

        with pytest.raises(UnsupportedTypeError):
            table.codec

    def test_entity_missing_column_attribute(self):
        class Partial:
            def __init__(self, surname, name=None):
                self.surname = surname

        table = Table("partials", Partial)
        table.varchar("surname", 50, primary_key=True)
        table.varchar("name", 50)

        with pytest.raises(MappingError):
            table.codec.from_entity(Partial("Kowalski"))

    def test_row_missing_column(self, invoices):
        with pytest.raises(MappingError):
            invoices.codec.to_entity({"number": 1})
