"""Unit tests for TextField, FormDocument and ActiveFieldInjector."""

import pytest

from surgical_report.core.exceptions import FieldNotFoundError
from surgical_report.services.form.fields import ActiveFieldInjector, FormDocument, TextField


@pytest.fixture
def document():
    doc = FormDocument()
    doc.add_field(TextField("hallazgos"))
    doc.add_field(TextField("complicaciones", max_length=20))
    return doc


@pytest.fixture
def injector(document):
    return ActiveFieldInjector(document)


class TestTextField:
    def test_set_value_moves_caret_to_end(self):
        field = TextField("f")
        field.set_value("hola")

        assert (field.selection_start, field.selection_end) == (4, 4)

    def test_set_value_truncates_to_max_length(self):
        field = TextField("f", max_length=3)
        field.set_value("abcdef")

        assert field.value == "abc"

    def test_select_clamps_and_orders(self):
        field = TextField("f", value="abcdef")
        field.select(10, 2)

        assert (field.selection_start, field.selection_end) == (2, 6)

    def test_listeners_fire_and_unsubscribe(self):
        field = TextField("f")
        seen: list[str] = []
        unsubscribe = field.subscribe(lambda f: seen.append(f.value))

        field.set_value("a")
        unsubscribe()
        field.set_value("b")

        assert seen == ["a"]


class TestFormDocument:
    def test_focus_sets_active_field(self, document):
        document.focus("hallazgos", 0, 0)

        assert document.active_field.field_id == "hallazgos"

    def test_blur_clears_focus(self, document):
        document.focus("hallazgos")
        document.blur()

        assert document.active_field is None

    def test_unknown_field_raises(self, document):
        with pytest.raises(FieldNotFoundError):
            document.focus("nope")


class TestInjector:
    def test_no_focus_returns_false(self, injector, document):
        assert injector.insert("texto") is False
        assert document.get("hallazgos").value == ""

    def test_inserts_at_caret(self, injector, document):
        field = document.get("hallazgos")
        field.set_value("Apéndice perforado")
        document.focus("hallazgos", 9, 9)

        assert injector.insert("muy ") is True
        assert field.value == "Apéndice muy perforado"
        assert field.selection_start == field.selection_end == 13

    def test_replaces_selection(self, injector, document):
        field = document.get("hallazgos")
        field.set_value("sin hallazgos")
        document.focus("hallazgos", 0, 3)

        injector.insert("con")

        assert field.value == "con hallazgos"

    def test_truncates_to_remaining_capacity(self, injector, document):
        field = document.get("complicaciones")
        field.set_value("0123456789012345")
        document.focus("complicaciones")

        assert injector.insert("abcdefgh") is True
        assert field.value == "0123456789012345abcd"

    def test_selection_frees_capacity(self, injector, document):
        field = document.get("complicaciones")
        field.set_value("x" * 20)
        document.focus("complicaciones", 0, 5)

        assert injector.insert("abcdefg") is True
        assert field.value == "abcde" + "x" * 15

    def test_full_field_returns_false(self, injector, document):
        field = document.get("complicaciones")
        field.set_value("x" * 20)
        document.focus("complicaciones")

        assert injector.insert("más") is False
        assert field.value == "x" * 20

    def test_focus_is_read_at_insert_time(self, injector, document):
        document.focus("hallazgos")
        document.focus("complicaciones")

        injector.insert("tarde")

        assert document.get("hallazgos").value == ""
        assert document.get("complicaciones").value == "tarde"

    def test_insert_fires_listeners(self, injector, document):
        field = document.get("hallazgos")
        seen: list[str] = []
        field.subscribe(lambda f: seen.append(f.value))
        document.focus("hallazgos")

        injector.insert("dictado ")

        assert seen == ["dictado "]
