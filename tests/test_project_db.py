from xref.parsers.php_parser import PhpParser
from xref.project_db import DeclaredClass, FileDeclarations, ProjectDatabase


def declarations_of(code, file_name="a.php"):
    return FileDeclarations.from_parsed_file(PhpParser().parse(code, file_name))


def test_declarations_from_parsed_file():
    code = (
        "<?php\n"
        "namespace App;\n"
        "abstract class Base implements \\Countable {}\n"
        "class Child extends Base {\n"
        "    function method() {}\n"
        "}\n"
        "function helper() {}\n"
        "$f = function () {};\n"
    )

    declarations = declarations_of(code)

    assert [c.name for c in declarations.classes] == ["App\\Base", "App\\Child"]
    base, child = declarations.classes
    assert base.is_abstract
    assert base.implements == ["Countable"]
    assert base.line_number == 3
    assert child.extends == ["App\\Base"]
    assert [f.name for f in declarations.functions] == ["App\\helper"]
    assert declarations.functions[0].line_number == 7


def test_declarations_dict_round_trip():
    declarations = declarations_of("<?php\ninterface I {}\nclass A implements I {}\nfunction f() {}\n")

    assert FileDeclarations.from_dict(declarations.to_dict()) == declarations


def test_lookup_is_case_insensitive():
    db = ProjectDatabase()
    db.add_file(declarations_of("<?php\nnamespace App;\nclass Foo {}\nfunction bar() {}\n"))

    assert db.get_class("app\\foo").name == "App\\Foo"
    assert db.get_class("\\App\\FOO").name == "App\\Foo"
    assert db.get_function("App\\BAR").name == "App\\bar"
    assert db.get_class("App\\Missing") is None


def test_duplicate_classes():
    db = ProjectDatabase()
    db.add_file(declarations_of("<?php class Foo {} class Bar {}", "a.php"))
    db.add_file(declarations_of("<?php class Foo {}", "b.php"))

    duplicates = db.get_duplicate_classes()

    assert len(duplicates) == 1
    assert [d.file_name for d in duplicates[0]] == ["a.php", "b.php"]
    assert db.get_class("Foo").file_name == "a.php"
    assert db.file_names == ["a.php", "b.php"]


def test_get_classes_returns_first_declarations():
    db = ProjectDatabase()
    db.add_file(FileDeclarations("a.php", classes=[DeclaredClass("A", "class", "a.php", 1)]))
    db.add_file(FileDeclarations("b.php", classes=[DeclaredClass("A", "class", "b.php", 1)]))

    assert [c.file_name for c in db.get_classes()] == ["a.php"]
