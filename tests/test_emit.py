"""Tests for Java generation from analyzed programs."""

import pytest

from plclang.analyze import analyze
from plclang.emit import to_java
from plclang.errors import GenerateError
from plclang.parse import parse_source


def _java(source: str) -> str:
    program = parse_source(source)
    analyze(program)
    return to_java(program)


def test_full_program():
    source = """\
LET total: Integer = 0;
DEF add(n: Integer) DO
    total = total + n;
END
DEF main(): Integer DO
    LET label = "sum";
    add(2);
    IF total > 1 AND TRUE DO
        print(label + total);
    ELSE
        print('x');
    END
    WHILE FALSE DO END
    RETURN total;
END
"""
    expected = """\
public class Main {

    int total = 0;

    public static void main(String[] args) {
        System.exit(new Main().main());
    }

    Void add(int n) {
        total = total + n;
    }

    int main() {
        String label = "sum";
        add(2);
        if (total > 1 && true) {
            System.out.println(label + total);
        } else {
            System.out.println('x');
        }
        while (false) {}
        return total;
    }

}
"""
    assert _java(source) == expected


def test_no_fields():
    java = _java("DEF main(): Integer DO RETURN 0; END")
    assert java.startswith("public class Main {\n\n    public static void main(String[] args) {\n")
    assert "    int main() {\n        return 0;\n    }\n" in java


def test_declarations_use_binding_types():
    java = _java(
        "LET xs: IntegerIterable;\n"
        "DEF main(): Integer DO\n"
        "    LET d = 1.5;\n"
        "    LET c: Comparable = 'q';\n"
        "    LET s: String;\n"
        "    FOR i IN xs DO print(i); END\n"
        "    RETURN 0;\n"
        "END"
    )
    assert "    Iterable<Integer> xs;\n" in java
    assert "        double d = 1.5;\n" in java
    assert "        Comparable c = 'q';\n" in java
    assert "        String s;\n" in java
    assert "        for (int i : xs) {\n            System.out.println(i);\n        }\n" in java


def test_parenthesization():
    java = _java(
        "DEF main(): Integer DO\n"
        "    LET a = TRUE;\n"
        "    LET b = FALSE;\n"
        "    LET c = a OR b AND a;\n"
        "    LET d = (a AND b) OR a;\n"
        "    LET n = 10 - (4 - 3) * 2;\n"
        "    LET m = 10 - 4 + 3;\n"
        "    RETURN n;\n"
        "END"
    )
    assert "boolean c = (a || b) && a;" in java
    assert "boolean d = (a && b) || a;" in java
    assert "int n = 10 - (4 - 3) * 2;" in java
    assert "int m = 10 - 4 + 3;" in java


def test_string_escapes():
    java = _java('DEF main(): Integer DO print("tab\\there \\"q\\""); print(\'\\\'\'); RETURN 0; END')
    assert 'System.out.println("tab\\there \\"q\\"");' in java
    assert "System.out.println('\\'');" in java


def test_unanalyzed_program_is_rejected():
    with pytest.raises(GenerateError):
        to_java(parse_source("DEF main(): Integer DO RETURN 0; END"))
    with pytest.raises(GenerateError):
        to_java(parse_source("LET x: Integer;\nDEF main(): Integer DO RETURN 0; END"))
