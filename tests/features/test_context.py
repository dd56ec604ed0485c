"""
Tests for locating the focused node and building its context.
"""

from rubis.ast import nodes
from rubis.ast.context import build_node_context, locate

SOURCE = """module Admin
  class User < ApplicationRecord
    validates :name, presence: true, if: :active?
  end
end
"""

ROUTES = """Rails.application.routes.draw do
  namespace "admin" do
    get "/ping", to: "health#check"
  end
end
"""


class TestLocate:
    def test_narrowest_node(self, helpers, parse):
        """Test that locate returns the innermost node under the cursor."""
        program = parse(SOURCE)
        position = helpers.position_of(SOURCE, ":active?")

        target, _ = locate(program, position.line, position.character)

        assert isinstance(target, nodes.SymbolNode)
        assert target.value == "active?"

    def test_nesting(self, helpers, parse):
        """Test nesting lists enclosing modules and classes outermost first."""
        program = parse(SOURCE)
        position = helpers.position_of(SOURCE, ":name")

        _, context = locate(program, position.line, position.character)

        assert context.nesting == ["Admin", "User"]
        assert context.fully_qualified_name == "Admin::User"

    def test_call_node_through_keyword_hash(self, helpers, parse):
        """Test the enclosing call is found through a keyword option."""
        program = parse(SOURCE)
        position = helpers.position_of(SOURCE, ":active?")

        _, context = locate(program, position.line, position.character)

        assert context.call_node is not None
        assert context.call_node.name == "validates"

    def test_receiver_is_not_an_argument(self, helpers, parse):
        """Test a call receiver has no enclosing argument call."""
        source = "records.each { |r| r.save }\n"
        program = parse(source)
        position = helpers.position_of(source, "records")

        target, context = locate(program, position.line, position.character)

        assert isinstance(target, nodes.CallNode)
        assert target.name == "records"
        assert context.call_node is None

    def test_outside_the_program(self, parse):
        """Test a position past the end yields no node and an empty context."""
        program = parse(SOURCE)

        target, context = locate(program, 40, 0)

        assert target is None
        assert context.nesting == []
        assert context.call_node is None
        assert context.reference_statements is program.statements

    def test_top_level(self, helpers, parse):
        """Test top-level code has empty nesting."""
        source = "has_many :posts\n"
        program = parse(source)
        position = helpers.position_of(source, ":posts")

        _, context = locate(program, position.line, position.character)

        assert context.nesting == []
        assert context.fully_qualified_name == ""


class TestReferenceStatements:
    def test_draw_block_body(self, helpers, parse):
        """Test route lookups start from the routes.draw block body."""
        program = parse(ROUTES)
        position = helpers.position_of(ROUTES, '"health#check"')

        _, context = locate(program, position.line, position.character)

        draw = program.statements.body[0]
        assert context.reference_statements is draw.block.body

    def test_program_statements_without_draw(self, helpers, parse):
        """Test drawn route files start from the top-level statements."""
        source = 'namespace "admin" do\n  get "/ping", to: "health#check"\nend\n'
        program = parse(source)
        position = helpers.position_of(source, '"health#check"')

        _, context = locate(program, position.line, position.character)

        assert context.reference_statements is program.statements

    def test_build_node_context_directly(self, helpers, parse):
        """Test building the context of a node found by walking the tree."""
        program = parse(ROUTES)
        string = helpers.find_nodes(
            program, nodes.StringNode, lambda node: node.content == "health#check"
        )[0]

        context = build_node_context(program, string)

        assert context.call_node.name == "get"
        assert context.nesting == []
