"""Tests for the tree-sitter Python and JavaScript parsers."""

from __future__ import annotations

import pathlib

import pytest

from callgraph.models.graph import SymbolKind
from callgraph.parsers import ParserFactory, default_factory
from callgraph.parsers.javascript_parser import JavaScriptParser
from callgraph.parsers.python_parser import PythonParser

PYTHON_SOURCE = b'''\
class Repo:
    table = "users"

    def __init__(self, db):
        self.db = db
        self.cache = {}

    def save(self, item):
        self.db.write(item)
        return normalize(item)


def normalize(item):
    return item


class Service(Repo):
    def place(self, order):
        check(order)
        self.save(order)
        Repo(None).save(order)


def check(order):
    normalize(order)
'''

JAVASCRIPT_SOURCE = b'''\
import { log } from "./log";

export class Cart {
  items = [];

  constructor(store) {
    this.store = store;
  }

  add(item) {
    this.items.push(item);
    this.persist();
  }

  persist() {
    save(this.items);
  }
}

export function save(data) {
  log(data);
}

const checkout = (cart) => {
  const c = new Cart(null);
  c.add(cart);
};
'''


def _calls_of(parsed, caller_name):
    return [site.callee_name for site in parsed.calls if site.caller.name == caller_name]


class TestPythonParser:
    @pytest.fixture
    def parsed(self):
        return PythonParser().parse_file(pathlib.Path("/ws/service.py"), PYTHON_SOURCE)

    def test_callables(self, parsed):
        assert [(ref.name, ref.kind) for ref in parsed.callables] == [
            ("Repo.__init__", SymbolKind.CONSTRUCTOR),
            ("Repo.save", SymbolKind.METHOD),
            ("normalize", SymbolKind.FUNCTION),
            ("Service.place", SymbolKind.METHOD),
            ("check", SymbolKind.FUNCTION),
        ]
        assert all(ref.resource == "/ws/service.py" for ref in parsed.callables)

    def test_callable_ranges_are_zero_based(self, parsed):
        save = next(ref for ref in parsed.callables if ref.name == "Repo.save")
        assert (save.range.start.line, save.range.start.character) == (7, 4)

    def test_outline(self, parsed):
        repo, normalize, service, check = parsed.outline

        assert (repo.name, repo.kind) == ("Repo", SymbolKind.CLASS)
        assert [(m.name, m.kind) for m in repo.children] == [
            ("table", SymbolKind.FIELD),
            ("__init__", SymbolKind.CONSTRUCTOR),
            ("save", SymbolKind.METHOD),
            ("db", SymbolKind.PROPERTY),
            ("cache", SymbolKind.PROPERTY),
        ]
        assert repo.selection_range.start.character == 6
        assert (normalize.name, normalize.kind) == ("normalize", SymbolKind.FUNCTION)
        assert [m.name for m in service.children] == ["place"]
        assert check.name == "check"

    def test_call_sites(self, parsed):
        assert _calls_of(parsed, "Repo.__init__") == []
        assert _calls_of(parsed, "Repo.save") == ["self.db.write", "normalize"]
        assert _calls_of(parsed, "Service.place") == ["check", "self.save", "save", "Repo"]
        assert _calls_of(parsed, "check") == ["normalize"]

    def test_call_site_range_covers_callee(self, parsed):
        site = next(s for s in parsed.calls if s.callee_name == "self.save")
        assert (site.range.start.line, site.range.start.character) == (19, 8)
        assert (site.range.end.line, site.range.end.character) == (19, 17)
        assert site.simple_name == "save"

    def test_decorated_definitions(self):
        source = b"class A:\n    @property\n    def size(self):\n        return len(self)\n\n@cache\ndef top():\n    pass\n"

        parsed = PythonParser().parse_file(pathlib.Path("/ws/a.py"), source)

        assert [ref.name for ref in parsed.callables] == ["A.size", "top"]
        assert _calls_of(parsed, "A.size") == ["len"]


class TestJavaScriptParser:
    @pytest.fixture
    def parsed(self):
        return JavaScriptParser().parse_file(pathlib.Path("/ws/cart.js"), JAVASCRIPT_SOURCE)

    def test_callables(self, parsed):
        assert [(ref.name, ref.kind) for ref in parsed.callables] == [
            ("Cart.constructor", SymbolKind.CONSTRUCTOR),
            ("Cart.add", SymbolKind.METHOD),
            ("Cart.persist", SymbolKind.METHOD),
            ("save", SymbolKind.FUNCTION),
            ("checkout", SymbolKind.FUNCTION),
        ]

    def test_outline(self, parsed):
        cart, save, checkout = parsed.outline

        assert [(m.name, m.kind) for m in cart.children] == [
            ("items", SymbolKind.FIELD),
            ("constructor", SymbolKind.CONSTRUCTOR),
            ("add", SymbolKind.METHOD),
            ("persist", SymbolKind.METHOD),
        ]
        assert (save.name, save.kind) == ("save", SymbolKind.FUNCTION)
        assert checkout.range.start.line == 23

    def test_call_sites(self, parsed):
        assert _calls_of(parsed, "Cart.add") == ["this.items.push", "this.persist"]
        assert _calls_of(parsed, "Cart.persist") == ["save"]
        assert _calls_of(parsed, "save") == ["log"]
        assert _calls_of(parsed, "checkout") == ["Cart", "c.add"]


class TestParserFactory:
    def test_builtin_languages(self):
        assert default_factory().supported_languages == ["javascript", "python"]

    def test_instances_are_cached(self):
        factory = default_factory()
        assert factory.get("python") is factory.get("python")

    def test_unknown_language(self):
        assert ParserFactory().get("cobol") is None
