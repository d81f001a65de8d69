"""Tests for the structural shell parser.

Parsing never executes anything; these tests only inspect the tree.
"""

import pytest

from agentic_guard.shell.models import (
    CommandList,
    CompoundCommand,
    Pipeline,
    SimpleCommand,
    Subshell,
)
from agentic_guard.shell.parser import (
    MAX_NESTING_DEPTH,
    CommandParser,
    ParseError,
    parse,
    substitution_bodies,
)


class TestSimpleCommands:
    """Tests for words, quoting and assignments."""

    def test_simple_command(self):
        result = parse("ls -la")

        assert result.ok
        assert isinstance(result.node, SimpleCommand)
        assert result.node.name == "ls"
        assert result.node.args == ["-la"]

    def test_quotes_are_removed_from_text(self):
        node = parse("echo 'a b' \"c d\"").node

        assert node.args == ["a b", "c d"]
        assert node.words[0].raw == "'a b'"
        assert node.words[0].is_quoted

    def test_variables_are_not_expanded(self):
        node = parse("cat $HOME/notes ${FILE}").node

        assert node.args == ["$HOME/notes", "${FILE}"]

    def test_assignments_prefix(self):
        node = parse("FOO=bar BAZ=1 make build").node

        assert [w.raw for w in node.assignments] == ["FOO=bar", "BAZ=1"]
        assert node.name == "make"
        assert node.args == ["build"]

    def test_bare_assignment(self):
        node = parse("FOO=bar").node

        assert node.name == ""
        assert len(node.assignments) == 1

    def test_comment_is_ignored(self):
        node = parse("ls # rm -rf /").node

        assert node.name == "ls"
        assert node.args == []

    def test_base_name_strips_directory(self):
        node = parse("/usr/bin/FIND .").node

        assert node.name == "/usr/bin/FIND"
        assert node.base_name == "find"

    def test_render_uses_raw_words(self):
        node = parse("grep 'a b' file.txt > out.txt").node

        assert node.render() == "grep 'a b' file.txt >out.txt"


def command_names(node) -> list[str]:
    """Names of every simple command in a tree, in order."""
    if isinstance(node, SimpleCommand):
        return [node.name]
    if isinstance(node, Pipeline):
        children = node.stages
    elif isinstance(node, CommandList):
        children = node.members
    elif isinstance(node, Subshell):
        children = [node.body]
    else:
        children = node.bodies
    return [name for child in children for name in command_names(child)]


class TestCompoundCommands:
    """Tests for pipelines, lists, subshells and shell statements."""

    def test_pipeline(self):
        node = parse("ls -la | grep foo").node

        assert isinstance(node, Pipeline)
        assert [s.name for s in node.stages] == ["ls", "grep"]
        assert not node.negated

    def test_command_list_operators(self):
        node = parse("make && make test || echo failed").node

        assert isinstance(node, CommandList)
        assert node.operators == ["&&", "||"]
        assert len(node.members) == 3

    def test_semicolon_and_background(self):
        node = parse("echo hi; sleep 1 &").node

        assert isinstance(node, CommandList)
        assert node.operators[0] == ";"
        assert len(node.members) == 2

    def test_newline_separates_commands(self):
        node = parse("ls\npwd").node

        assert isinstance(node, CommandList)
        assert [m.name for m in node.members] == ["ls", "pwd"]

    def test_subshell_with_redirection(self):
        node = parse("(cd build && make) > build.log").node

        assert isinstance(node, Subshell)
        assert isinstance(node.body, CommandList)
        assert node.redirections[0].target.text == "build.log"

    @pytest.mark.parametrize(
        "text,keyword,names",
        [
            ("if true; then rm -rf /; fi", "if", ["true", "rm"]),
            ("if a; then b; elif c; then d; else e; fi", "if", ["a", "b", "c", "d", "e"]),
            ("while true; do dd if=/dev/zero of=/dev/sda; done", "while", ["true", "dd"]),
            ("until make; do sleep 1; done", "until", ["make", "sleep"]),
            ("{ rm -rf /; }", "{", ["rm"]),
        ],
    )
    def test_statements(self, text, keyword, names):
        result = parse(text)

        assert result.ok
        assert isinstance(result.node, CompoundCommand)
        assert result.node.keyword == keyword
        assert command_names(result.node) == names

    def test_for_loop_words(self):
        node = parse("for f in a.txt b.txt; do rm -rf ~; done").node

        assert isinstance(node, CompoundCommand)
        assert node.keyword == "for"
        assert {"a.txt", "b.txt"} <= {w.text for w in node.words}
        assert command_names(node) == ["rm"]

    def test_statement_redirection(self):
        node = parse("for f in a; do echo $f; done > out.txt").node

        assert isinstance(node, CompoundCommand)
        assert node.redirections[0].target.text == "out.txt"

    def test_statement_inside_list(self):
        node = parse("ls && if true; then pwd; fi").node

        assert isinstance(node, CommandList)
        assert isinstance(node.members[1], CompoundCommand)
        assert command_names(node) == ["ls", "true", "pwd"]


class TestRedirections:
    """Tests for redirection parsing."""

    def test_output_and_duplication(self):
        node = parse("ls > out.txt 2>&1").node

        first, second = node.redirections
        assert (first.operator, first.target.text, first.fd) == (">", "out.txt", "")
        assert (second.operator, second.target.text, second.fd) == (">&", "1", "2")
        assert first.is_output
        assert not second.is_output

    def test_append_and_input(self):
        node = parse("sort < in.txt >> out.txt").node

        assert [r.operator for r in node.redirections] == ["<", ">>"]
        assert [r.is_output for r in node.redirections] == [False, True]

    def test_heredoc_body_is_not_a_command(self):
        result = parse("cat <<EOF\nrm -rf /\nEOF")

        assert result.ok
        assert result.node.name == "cat"
        assert result.node.redirections[0].operator == "<<"
        assert result.node.redirections[0].target.substitutions == []

    def test_heredoc_substitution_is_parsed(self):
        node = parse("cat <<EOF\nuser: $(whoami)\nEOF").node

        target = node.redirections[0].target
        assert [sub.name for sub in target.substitutions] == ["whoami"]

    @pytest.mark.parametrize("delimiter", ["'EOF'", '"EOF"', "\\EOF"])
    def test_quoted_heredoc_delimiter_is_literal(self, delimiter):
        node = parse(f"cat <<{delimiter}\n$(whoami)\nEOF").node

        assert node.redirections[0].target.substitutions == []


class TestSubstitutions:
    """Tests for command and process substitution."""

    def test_command_substitution_is_parsed(self):
        node = parse("echo $(rm -rf /)").node

        word = node.words[0]
        assert word.text == "$(rm -rf /)"
        sub = word.substitutions[0]
        assert isinstance(sub, SimpleCommand)
        assert sub.name == "rm"
        assert sub.args == ["-rf", "/"]

    def test_backtick_substitution(self):
        node = parse("echo `whoami`").node

        assert node.words[0].substitutions[0].name == "whoami"

    def test_substitution_inside_double_quotes(self):
        node = parse('echo "today is $(date)"').node

        assert node.words[0].substitutions[0].name == "date"

    def test_single_quotes_do_not_substitute(self):
        node = parse("echo '$(rm -rf /)'").node

        assert node.words[0].substitutions == []

    def test_nested_substitution(self):
        node = parse("echo $(echo $(whoami))").node

        inner = node.words[0].substitutions[0]
        assert inner.words[0].substitutions[0].name == "whoami"

    def test_process_substitution(self):
        node = parse("diff <(ls a) <(ls b)").node

        assert node.name == "diff"
        assert node.words[0].substitutions[0].name == "ls"

    @pytest.mark.parametrize(
        "text",
        [
            "echo ${x:-$(whoami)}",
            "echo ${x:-`whoami`}",
            "echo $(( $(whoami) + 1 ))",
            "echo \"${x:=$(whoami)}\"",
        ],
    )
    def test_substitution_inside_expansion(self, text):
        node = parse(text).node

        assert any(sub.name == "whoami" for sub in node.words[0].substitutions)


class TestSubstitutionBodies:
    """Tests for locating substitutions in unstructured text."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("echo $(ls) `pwd`", ["ls", "pwd"]),
            ("echo '$(ls)'", []),
            ("echo \"$(ls)\"", ["ls"]),
            ("echo ${a:-$(ls)}", ["ls"]),
            ("echo $((1 + $(ls)))", ["ls"]),
            ("echo $((1 + 2))", []),
        ],
    )
    def test_bodies(self, text, expected):
        assert substitution_bodies(text) == expected

    def test_expansions_only(self):
        assert substitution_bodies("$(pwd) ${a:-$(ls)}", expansions_only=True) == ["ls"]

    def test_literal_quotes(self):
        assert substitution_bodies("it's $(whoami)", literal_quotes=True) == ["whoami"]

    def test_unterminated(self):
        with pytest.raises(ParseError):
            substitution_bodies("echo $(ls")


class TestMalformedInput:
    """Malformed input yields an opaque node and diagnostics, never an exception."""

    @pytest.mark.parametrize(
        "text",
        [
            "echo 'unterminated",
            'echo "unterminated',
            "echo $(ls",
            "ls &&",
            "ls |",
            "(ls",
            "ls >",
        ],
    )
    def test_diagnostics(self, text):
        result = parse(text)

        assert not result.ok
        assert result.diagnostics[0]
        assert isinstance(result.node, SimpleCommand)
        assert result.node.opaque
        assert result.node.words[0].text == text

    def test_opaque_node_keeps_substitutions(self):
        result = parse("echo $(whoami) &&")

        assert not result.ok
        assert [sub.name for sub in result.node.words[0].substitutions] == ["whoami"]

    def test_empty_input(self):
        result = CommandParser().parse("   ")

        assert not result.ok
        assert result.node.opaque

    def test_nesting_limit(self):
        depth = MAX_NESTING_DEPTH + 5
        text = "echo " + "$(echo " * depth + "x" + ")" * depth

        result = parse(text)

        assert not result.ok
        assert result.node.opaque
