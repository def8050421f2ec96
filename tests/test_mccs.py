import pytest

from kvm_switch.errors import (
    DanglingKeyError,
    InvalidStructureError,
    KeyNotAtomError,
    MalformedTopLevelError,
    ParserError,
    TokenizeMismatchError,
    UnexpectedEofError,
)
from kvm_switch.mccs import (
    Atom,
    ExprList,
    VcpCommand,
    extract_atom,
    extract_vcp_commands,
    format_expression,
    parse_cap_string,
    read_from_tokens,
    tokenize,
)

SAMPLE = "(prot(monitor)type(lcd)model(X1)cmds(01 02 03)vcp(02 04 05 08 10 12 60(01 03 11)))"


def test_tokenize_isolates_parentheses():
    assert tokenize("vcp(02 60(01 11))") == ["vcp", "(", "02", "60", "(", "01", "11", ")", ")"]


def test_tokenize_drops_empty_tokens():
    assert tokenize("  (a   b)\t\n") == ["(", "a", "b", ")"]


def test_read_from_tokens_builds_nested_tree():
    expr, consumed = read_from_tokens(tokenize("(a (b c) d)"))
    assert consumed == 8
    assert expr == ExprList((Atom("a"), ExprList((Atom("b"), Atom("c"))), Atom("d")))


def test_parse_cap_string_pairs_in_source_order():
    pairs = parse_cap_string(SAMPLE)
    assert [key for key, _ in pairs] == ["prot", "type", "model", "cmds", "vcp"]
    assert pairs[0][1] == ExprList((Atom("monitor"),))


def test_parse_keeps_duplicate_keys():
    pairs = parse_cap_string("(model(A) model(B))")
    assert [(k, extract_atom(v)) for k, v in pairs] == [("model", "A"), ("model", "B")]


def test_unbalanced_string_fails_with_end_of_input():
    with pytest.raises(UnexpectedEofError) as excinfo:
        parse_cap_string("(prot(monitor)")
    assert isinstance(excinfo.value, TokenizeMismatchError)


def test_empty_string_fails_with_end_of_input():
    with pytest.raises(UnexpectedEofError):
        parse_cap_string("")


def test_lone_closing_paren_is_invalid_structure():
    with pytest.raises(InvalidStructureError):
        parse_cap_string(") prot(monitor)")


def test_odd_length_top_level_is_malformed():
    with pytest.raises(MalformedTopLevelError) as excinfo:
        parse_cap_string("(prot(monitor) type)")
    assert isinstance(excinfo.value, DanglingKeyError)


def test_atom_root_is_malformed():
    with pytest.raises(MalformedTopLevelError):
        parse_cap_string("monitor")


def test_key_must_be_atom():
    with pytest.raises(KeyNotAtomError):
        parse_cap_string("((prot) (monitor))")


def test_parser_errors_share_base_class():
    for bad in ["(", ")", "(a)", "((a) b)"]:
        with pytest.raises(ParserError):
            parse_cap_string(bad)


def test_deep_nesting_does_not_overflow():
    depth = 5000
    expr, _ = read_from_tokens(tokenize("(" * depth + ")" * depth))
    assert isinstance(expr, ExprList)


def test_trailing_tokens_after_root_are_ignored():
    pairs = parse_cap_string("(model(X1)) garbage")
    assert [k for k, _ in pairs] == ["model"]


def test_extract_atom():
    assert extract_atom(ExprList((Atom("lcd"),))) == "lcd"
    assert extract_atom(ExprList(())) == ""
    assert extract_atom(ExprList((ExprList((Atom("x"),)),))) == ""
    assert extract_atom(Atom("lcd")) == ""


def test_extract_vcp_commands_attaches_following_list():
    expr, _ = read_from_tokens(tokenize("(60(01 03 11))"))
    assert extract_vcp_commands(expr) == [
        VcpCommand("60", [VcpCommand("01"), VcpCommand("03"), VcpCommand("11")])
    ]


def test_extract_vcp_commands_adjacency():
    expr, _ = read_from_tokens(tokenize("(02 14(05 08) 60(0F 11) D6)"))
    commands = extract_vcp_commands(expr)
    assert [c.code for c in commands] == ["02", "14", "60", "D6"]
    assert commands[0].values == []
    assert [v.code for v in commands[1].values] == ["05", "08"]
    assert [v.code for v in commands[2].values] == ["0F", "11"]
    assert commands[3].values == []


def test_extract_vcp_commands_skips_nested_lists_and_leading_lists():
    expr, _ = read_from_tokens(tokenize("((01) 60(01 (x) 11))"))
    commands = extract_vcp_commands(expr)
    assert commands == [VcpCommand("60", [VcpCommand("01"), VcpCommand("11")])]


def test_extract_vcp_commands_on_atom_is_empty():
    assert extract_vcp_commands(Atom("60")) == []


def test_format_expression_round_trip_preserves_keys_and_shapes():
    pairs = parse_cap_string(SAMPLE)
    rendered = "(" + " ".join(f"{key}{format_expression(value)}" for key, value in pairs) + ")"
    again = parse_cap_string(rendered)
    assert again == pairs


def test_format_expression_writes_values_next_to_code():
    expr, _ = read_from_tokens(tokenize("(02 60 (01 11))"))
    assert format_expression(expr) == "(02 60(01 11))"
