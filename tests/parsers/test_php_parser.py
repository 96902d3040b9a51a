import pytest

from xref.errors import ParseError
from xref.models import Attribute, TokenKind, is_public, is_static
from xref.parsed_file import CLOSE_BRACKETS, OPEN_BRACKETS
from xref.parsers.php_parser import PhpParser


@pytest.fixture(scope="module")
def parser():
    return PhpParser()


def find_token(pf, text, start=0):
    """Index of the first token with the given text at or after start."""
    for token in pf.tokens[start:]:
        if token.text == text:
            return token.index
    raise AssertionError(f"token {text!r} not found")


class TestTokens:
    def test_tokens_reproduce_source(self, parser):
        code = "<?php\n// comment\nfunction f($a) {\n    return $a + 1;\n}\n"
        pf = parser.parse(code, "test.php")

        assert "".join(t.text for t in pf.tokens) == code

    def test_token_indices_are_dense(self, parser):
        pf = parser.parse("<?php $a = [1, 2]; echo $a[0];", "test.php")

        assert [t.index for t in pf.tokens] == list(range(len(pf.tokens)))

    def test_token_kinds(self, parser):
        pf = parser.parse("<?php $a = 'x';", "test.php")

        assert pf.tokens[0].kind is TokenKind.OPEN_TAG
        assert pf.tokens[find_token(pf, "$a")].kind is TokenKind.VARIABLE
        assert pf.tokens[find_token(pf, "'x'")].kind is TokenKind.STRING

    def test_line_numbers(self, parser):
        pf = parser.parse("<?php\n\n$a = 1;\n$b = 2;\n", "test.php")

        assert pf.get_line_number_at(find_token(pf, "$a")) == 3
        assert pf.get_line_number_at(find_token(pf, "$b")) == 4
        assert pf.number_of_lines == 4

    @pytest.mark.parametrize(
        "source, expected",
        [
            ("<?php\necho 1;\n\n\n", 4),
            ("<?php\necho 1;", 2),
            ("<?php echo <<<EOT\none\ntwo\nEOT;\n", 4),
            ("<?php ?>\n<p>\n</p>\n\n", 4),
            ("", 0),
        ],
    )
    def test_number_of_lines_counts_trailing_lines(self, parser, source, expected):
        pf = parser.parse(source, "test.php")

        assert pf.number_of_lines == expected

    def test_accepts_bytes(self, parser):
        pf = parser.parse(b"<?php echo 1;", "test.php")

        assert pf.tokens[0].text == "<?php"

    def test_empty_file(self, parser):
        pf = parser.parse("", "empty.php")

        assert pf.tokens == []
        assert pf.namespaces == []
        assert pf.token_at(0) is None

    def test_supported_extensions(self, parser):
        assert parser.supported_extensions() == ["php"]


class TestParseErrors:
    def test_unclosed_brace(self, parser):
        with pytest.raises(ParseError) as exc_info:
            parser.parse("<?php\nfunction f() {\n", "broken.php")

        assert exc_info.value.line_number >= 1

    def test_unexpected_closing_bracket(self, parser):
        with pytest.raises(ParseError):
            parser.parse("<?php\n$a = 1);\n", "broken.php")

    def test_invalid_utf8(self, parser):
        with pytest.raises(ParseError) as exc_info:
            parser.parse(b"<?php\n$a = '\xff\xfe';\n", "binary.php")

        assert exc_info.value.byte_offset == 12
        assert exc_info.value.line_number == 2


class TestBrackets:
    def test_bracket_pairs_are_an_involution(self, parser):
        code = "<?php\nfunction f(array $a = [1, [2]]) {\n    return $a[0] ?? (int) $a;\n}\n"
        pf = parser.parse(code, "test.php")

        brackets = [
            t.index for t in pf.tokens
            if t.kind is TokenKind.PUNCTUATION and (t.text in OPEN_BRACKETS or t.text in CLOSE_BRACKETS)
        ]
        assert brackets
        for index in brackets:
            assert pf.get_paired_bracket(pf.get_paired_bracket(index)) == index

    def test_pair_of_non_bracket_raises(self, parser):
        pf = parser.parse("<?php $a = 1;", "test.php")

        with pytest.raises(KeyError):
            pf.get_paired_bracket(find_token(pf, "$a"))

    def test_extract_list(self, parser):
        pf = parser.parse("<?php foo($a, bar($b, $c), $d);", "test.php")

        open_paren = find_token(pf, "(")
        elements = pf.extract_list(open_paren + 1)

        assert [pf.tokens[i].text for i in elements] == ["$a", "bar", "$d"]

    def test_extract_list_empty(self, parser):
        pf = parser.parse("<?php foo();", "test.php")

        assert pf.extract_list(find_token(pf, "(") + 1) == []

    def test_extract_list_with_separator(self, parser):
        pf = parser.parse("<?php for ($i = 0; $i < 10; ++$i) {}", "test.php")

        elements = pf.extract_list(find_token(pf, "(") + 1, separator=";")

        assert [pf.tokens[i].text for i in elements] == ["$i", "$i", "++"]


class TestClasses:
    def test_class_extends_with_public_method(self, parser):
        pf = parser.parse("<?php class A extends B { public function f() {} }", "test.php")

        assert len(pf.classes) == 1
        class_decl = pf.classes[0]
        assert class_decl.name == "A"
        assert class_decl.kind == "class"
        assert class_decl.extends == ["B"]

        assert len(pf.functions) == 1
        method = pf.functions[0]
        assert method.name == "f"
        assert method.class_name == "A"
        assert is_public(method.attributes)
        assert not is_static(method.attributes)
        assert not method.attributes & Attribute.ABSTRACT
        assert class_decl.methods == [method]

    def test_class_body_extent(self, parser):
        pf = parser.parse("<?php class A { }", "test.php")

        class_decl = pf.classes[0]
        assert pf.tokens[class_decl.body_starts].text == "{"
        assert pf.tokens[class_decl.body_ends].text == "}"
        assert pf.get_paired_bracket(class_decl.body_starts) == class_decl.body_ends
        assert pf.tokens[class_decl.name_index].text == "A"

    def test_interface_and_implements(self, parser):
        code = "<?php\ninterface I {}\ninterface J extends I {}\nclass C implements I, J {}\n"
        pf = parser.parse(code, "test.php")

        kinds = {c.name: c.kind for c in pf.classes}
        assert kinds == {"I": "interface", "J": "interface", "C": "class"}
        assert pf.classes[1].extends == ["I"]
        assert pf.classes[2].implements == ["I", "J"]

    def test_abstract_class(self, parser):
        code = "<?php abstract class Shape { abstract public function area(): float; }"
        pf = parser.parse(code, "test.php")

        assert pf.classes[0].is_abstract
        method = pf.functions[0]
        assert method.is_declaration
        assert method.body_starts is None
        assert method.return_type == "float"
        assert method.attributes & Attribute.ABSTRACT
        assert method.attributes & Attribute.PUBLIC

    def test_trait_use(self, parser):
        code = "<?php\ntrait Greets {}\nclass C {\n    use Greets;\n    public $a;\n}\n"
        pf = parser.parse(code, "test.php")

        c = [c for c in pf.classes if c.name == "C"][0]
        assert c.uses == ["Greets"]
        assert [p.name for p in c.properties] == ["$a"]

    def test_class_constant_reference_is_not_a_class(self, parser):
        pf = parser.parse("<?php $name = Foo::class;", "test.php")

        assert pf.classes == []

    def test_enum_cases_are_constants(self, parser):
        code = "<?php\nenum Suit: string {\n    case Hearts = 'H';\n    case Spades = 'S';\n}\n"
        pf = parser.parse(code, "test.php")

        enum = pf.classes[0]
        assert enum.kind == "enum"
        assert [c.name for c in enum.constants] == ["Hearts", "Spades"]
        assert all(c.attributes == Attribute.PUBLIC for c in enum.constants)


class TestMembers:
    def test_properties(self, parser):
        code = (
            "<?php\nclass C {\n"
            "    public static $a = 1, $b;\n"
            "    private ?int $c = null;\n"
            "    var $d;\n"
            "}\n"
        )
        pf = parser.parse(code, "test.php")

        props = {p.name: p for p in pf.classes[0].properties}
        assert set(props) == {"$a", "$b", "$c", "$d"}
        assert props["$a"].attributes == Attribute.PUBLIC | Attribute.STATIC
        assert props["$b"].attributes == Attribute.PUBLIC | Attribute.STATIC
        assert props["$c"].attributes == Attribute.PRIVATE
        assert props["$c"].type_name == "?int"
        assert props["$d"].attributes == Attribute.NONE
        assert is_public(props["$d"].attributes)
        assert all(p.class_name == "C" for p in props.values())

    def test_class_constants(self, parser):
        code = "<?php class C { const X = 1, Y = 2; protected const Z = 3; }"
        pf = parser.parse(code, "test.php")

        constants = {c.name: c for c in pf.classes[0].constants}
        assert set(constants) == {"X", "Y", "Z"}
        assert constants["Z"].attributes == Attribute.PROTECTED
        assert constants["X"].class_name == "C"

    def test_file_constants_are_qualified(self, parser):
        pf = parser.parse("<?php\nnamespace App;\nconst VERSION = '1.0';\n", "test.php")

        assert [c.name for c in pf.constants] == ["App\\VERSION"]
        assert pf.constants[0].class_name is None

    def test_static_method(self, parser):
        code = "<?php class C { public static function make() { return new static(); } }"
        pf = parser.parse(code, "test.php")

        method = pf.functions[0]
        assert method.attributes == Attribute.PUBLIC | Attribute.STATIC

    def test_modifiers_reset_after_declaration(self, parser):
        code = "<?php class C { private static $a; function f() {} }"
        pf = parser.parse(code, "test.php")

        assert pf.functions[0].attributes == 0
        assert is_public(pf.functions[0].attributes)

    def test_promoted_constructor_parameters(self, parser):
        code = "<?php class P { public function __construct(private readonly int $x, $y) {} }"
        pf = parser.parse(code, "test.php")

        props = pf.classes[0].properties
        assert [p.name for p in props] == ["$x"]
        assert props[0].attributes == Attribute.PRIVATE | Attribute.READONLY
        assert props[0].type_name == "int"
        assert [p.name for p in pf.functions[0].parameters] == ["$x", "$y"]


class TestFunctions:
    def test_free_function(self, parser):
        pf = parser.parse("<?php function &g(array &$arr, $d = 5, int ...$nums): ?array { return $arr; }", "test.php")

        function = pf.functions[0]
        assert function.name == "g"
        assert function.class_name is None
        assert function.returns_reference
        assert function.return_type == "?array"
        assert not function.is_declaration

        arr, d, nums = function.parameters
        assert arr.name == "$arr"
        assert arr.type_name == "array"
        assert arr.is_passed_by_reference
        assert not arr.has_default_value
        assert d.has_default_value
        assert d.type_name is None
        assert nums.is_variadic
        assert nums.type_name == "int"

    def test_function_in_namespace_is_qualified(self, parser):
        pf = parser.parse("<?php\nnamespace Lib\\Util;\nfunction helper() {}\n", "test.php")

        assert pf.functions[0].name == "Lib\\Util\\helper"

    def test_closure_with_use(self, parser):
        code = "<?php\n$f = function ($x) use (&$total, $step) {\n    $total += $x * $step;\n};\n"
        pf = parser.parse(code, "test.php")

        closure = pf.functions[0]
        assert closure.is_closure
        assert closure.name is None
        assert [p.name for p in closure.parameters] == ["$x"]
        assert [u.name for u in closure.used_variables] == ["$total", "$step"]
        assert closure.used_variables[0].is_passed_by_reference

    def test_arrow_function(self, parser):
        pf = parser.parse("<?php $double = fn($x) => $x * 2;", "test.php")

        arrow = pf.functions[0]
        assert arrow.is_closure
        assert [p.name for p in arrow.parameters] == ["$x"]
        body_x = find_token(pf, "$x", find_token(pf, "=>"))
        assert pf.get_method_at(body_x) is arrow

    def test_interface_method_is_declaration(self, parser):
        pf = parser.parse("<?php interface I { public function f(int $a, string ...$rest): void; }", "test.php")

        method = pf.functions[0]
        assert method.is_declaration
        assert method.class_name == "I"
        assert method.return_type == "void"
        assert [p.name for p in method.parameters] == ["$a", "$rest"]


class TestLookups:
    CODE = (
        "<?php\n"
        "class A {\n"
        "    public function run() {\n"
        "        $cb = function () { return $this; };\n"
        "        return $cb;\n"
        "    }\n"
        "}\n"
        "function free() { $x = 1; }\n"
    )

    def test_class_and_method_at(self, parser):
        pf = parser.parse(self.CODE, "test.php")

        this_index = find_token(pf, "$this")
        assert pf.get_class_at(this_index).name == "A"
        assert pf.get_method_at(this_index).is_closure
        assert pf.get_named_method_at(this_index).name == "run"

        x_index = find_token(pf, "$x")
        assert pf.get_class_at(x_index) is None
        assert pf.get_method_at(x_index).name == "free"

    def test_outside_any_body(self, parser):
        pf = parser.parse(self.CODE, "test.php")

        assert pf.get_class_at(0) is None
        assert pf.get_method_at(0) is None
        assert pf.get_class_at(len(pf.tokens) + 10) is None

    def test_bodies_are_nested_not_overlapping(self, parser):
        pf = parser.parse(self.CODE, "test.php")

        for function in pf.functions:
            for other in pf.functions:
                if function is other:
                    continue
                a = (function.index, function.body_ends)
                b = (other.index, other.body_ends)
                disjoint = a[1] < b[0] or b[1] < a[0]
                nested = (a[0] <= b[0] and b[1] <= a[1]) or (b[0] <= a[0] and a[1] <= b[1])
                assert disjoint or nested

    def test_navigation(self, parser):
        pf = parser.parse("<?php  $a  =  1;", "test.php")

        a = find_token(pf, "$a")
        assert pf.next_non_space(a).text == "="
        assert pf.prev_non_space(a).text == "<?php"
        assert pf.prev_non_space(0) is None

    def test_release(self, parser):
        pf = parser.parse(self.CODE, "test.php")

        pf.release()

        assert pf.tokens == []
        assert pf.classes == []
        assert pf.get_class_at(0) is None
        assert pf.file_name == "test.php"


class TestNamespaces:
    def test_file_without_namespace_has_global_record(self, parser):
        pf = parser.parse("<?php class A {}", "test.php")

        assert len(pf.namespaces) == 1
        assert pf.namespaces[0].name == ""
        assert pf.namespaces[0].index == 0
        assert pf.namespaces[0].body_ends == len(pf.tokens) - 1

    def test_every_token_in_exactly_one_namespace(self, parser):
        code = (
            "<?php\n"
            "namespace A;\n"
            "class X {}\n"
            "namespace B;\n"
            "class X {}\n"
        )
        pf = parser.parse(code, "test.php")

        for index in range(len(pf.tokens)):
            owners = [ns for ns in pf.namespaces if ns.contains(index)]
            assert len(owners) == 1
        assert [c.name for c in pf.classes] == ["A\\X", "B\\X"]

    def test_braced_namespaces(self, parser):
        code = "<?php\nnamespace A {\n    class X {}\n}\nnamespace B {\n    class X {}\n}\n"
        pf = parser.parse(code, "test.php")

        assert [c.name for c in pf.classes] == ["A\\X", "B\\X"]
        explicit = [ns for ns in pf.namespaces if ns.name]
        assert [ns.name for ns in explicit] == ["A", "B"]
        for ns in explicit:
            assert pf.tokens[ns.body_ends].text == "}"
        for index in range(len(pf.tokens)):
            assert sum(1 for ns in pf.namespaces if ns.contains(index)) == 1

    def test_imports_resolve_parents(self, parser):
        code = (
            "<?php\n"
            "namespace App\\Models;\n"
            "\n"
            "use Lib\\Base as ParentModel;\n"
            "use Lib\\Contracts\\Jsonable;\n"
            "\n"
            "class User extends ParentModel implements Jsonable, Other {}\n"
        )
        pf = parser.parse(code, "test.php")

        user = pf.classes[0]
        assert user.name == "App\\Models\\User"
        assert user.extends == ["Lib\\Base"]
        assert user.implements == ["Lib\\Contracts\\Jsonable", "App\\Models\\Other"]

        namespace = pf.get_namespace_at(user.index)
        assert namespace.name == "App\\Models"
        assert namespace.import_map == {
            "ParentModel": "Lib\\Base",
            "Jsonable": "Lib\\Contracts\\Jsonable",
        }

    def test_use_function_is_not_a_class_import(self, parser):
        code = "<?php\nnamespace App;\nuse function Lib\\helper;\nuse Lib\\Thing;\n"
        pf = parser.parse(code, "test.php")

        namespace = [ns for ns in pf.namespaces if ns.name == "App"][0]
        assert namespace.import_map == {"Thing": "Lib\\Thing"}

    def test_global_imports(self, parser):
        pf = parser.parse("<?php\nuse Lib\\Thing;\nclass A extends Thing {}\n", "test.php")

        assert pf.classes[0].extends == ["Lib\\Thing"]


class TestQualifyName:
    CODE = (
        "<?php\n"
        "namespace Foo;\n"
        "use Bar\\Baz;\n"
        "class Marker {}\n"
    )

    @pytest.fixture
    def pf(self, parser):
        return parser.parse(self.CODE, "test.php")

    @pytest.fixture
    def index(self, pf):
        return pf.classes[0].index

    def test_relative_name_gets_namespace(self, pf, index):
        assert pf.qualify_name("bar", index) == "Foo\\bar"

    def test_fully_qualified_name(self, pf, index):
        assert pf.qualify_name("\\Foo\\bar", index) == "Foo\\bar"
        assert pf.qualify_name("\\string", index) == "string"

    def test_imported_name(self, pf, index):
        assert pf.qualify_name("Baz\\quxx", index) == "Bar\\Baz\\quxx"
        assert pf.qualify_name("Baz", index) == "Bar\\Baz"

    def test_import_lookup_is_case_insensitive(self, pf, index):
        assert pf.qualify_name("baz", index) == "Bar\\Baz"

    def test_special_names(self, pf, index):
        assert pf.qualify_name("self", index) == "self"
        assert pf.qualify_name("parent", index) == "parent"
        assert pf.qualify_name("int", index) == "int"

    def test_idempotent(self, pf, index):
        for name in ("bar", "\\Foo\\bar", "Baz\\quxx", "self", "Foo\\Nested"):
            once = pf.qualify_name(name, index)
            assert pf.qualify_name(once, index) == once

    def test_outside_namespace(self, pf):
        assert pf.qualify_name("bar", 0) == "bar"
