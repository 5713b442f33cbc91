"""Tests for prim tree parsing (hierarchy.py)."""
from __future__ import annotations

import pytest

from usda_timeline.hierarchy import (
    NOT_FOUND,
    append_to_prim,
    find_matching_brace,
    get_prim_hierarchy,
    index_by_path,
    mask_nested_blocks,
    parse_prim_tree,
)


LAYER = '''#usda 1.0
(
    defaultPrim = "World"
    upAxis = "Z"
)

def Xform "World" (
    prepend references = @base.usda@</World>
)
{
    custom string primvars:displayName = "World Root"
    custom token primvars:status = "WIP"

    def Mesh "Floor"
    {
        color3f[] primvars:displayColor = [(0.5, 0.25, 1)]
        float opacity = 0.5
        custom string primvars:entityType = "Real Element"
        point3f[] points = [(0, 0, 0), (1, 0, 0), (1, 1, 0)]
        int[] faceVertexIndices = [0, 1, 2]
    }

    over Sphere "Ball"
    {
        double radius = 2.5
    }
}

def Scope "Props" {
    prepend payload = @props.usda@
}
'''


@pytest.fixture
def prims():
    return parse_prim_tree(LAYER)


class TestBraceMatcher:
    def test_finds_matching_brace(self):
        assert find_matching_brace("{a{b}c}", 0) == 6
        assert find_matching_brace("x {a} y", 2) == 4

    def test_unbalanced_returns_not_found(self):
        assert find_matching_brace("{a{b}", 0) == NOT_FOUND

    def test_quotes_are_not_special(self):
        text = '{ custom string s = "}" }'
        assert find_matching_brace(text, 0) == text.index("}")


class TestMasking:
    def test_removes_nested_blocks(self):
        assert mask_nested_blocks("a { b { c } } d") == "a  d"

    def test_unterminated_block_masks_remainder(self):
        assert mask_nested_blocks("keep { lost") == "keep "

    def test_stray_closing_brace_dropped(self):
        assert mask_nested_blocks("a } b") == "a  b"

    def test_quoted_braces_kept_when_skipping_strings(self):
        content = 'user = "bob{" { def X {} } type = "}"'
        assert mask_nested_blocks(content, skip_quoted=True) == 'user = "bob{"  type = "}"'
        assert mask_nested_blocks(content) == 'user = "bob"'

    def test_matching_brace_can_skip_strings(self):
        text = '{ s = "}" }'
        assert find_matching_brace(text, 0, skip_quoted=True) == len(text) - 1


class TestStructure:
    def test_roots_in_source_order(self, prims):
        assert [p.name for p in prims] == ["World", "Props"]
        assert [p.path for p in prims] == ["/World", "/Props"]

    def test_children_paths(self, prims):
        world = prims[0]
        assert [c.path for c in world.children] == ["/World/Floor", "/World/Ball"]
        for child in world.children:
            assert child.path == world.path + "/" + child.name

    def test_specifier_and_type(self, prims):
        ball = prims[0].children[1]
        assert ball.specifier == "over"
        assert ball.type == "Sphere"
        assert prims[0].specifier == "def"
        assert prims[0].type == "Xform"

    def test_sibling_count_matches_blocks(self):
        text = "\n".join(f'def Xform "P{i}" {{\n}}' for i in range(7))
        prims = parse_prim_tree(text)
        assert [p.name for p in prims] == [f"P{i}" for i in range(7)]

    def test_raw_text_round_trips_through_offsets(self, prims):
        for root in prims:
            for node in root.walk():
                assert LAYER[node.start_index:node.end_index] == node.raw_text
                assert node.raw_text.startswith(node.specifier)
                assert node.raw_text.endswith("}")

    def test_raw_content_is_text_between_braces(self, prims):
        props = prims[1]
        assert props.raw_content.strip() == "prepend payload = @props.usda@"

    def test_path_prefix(self):
        prims = parse_prim_tree('def Xform "C" {}', "/Root")
        assert prims[0].path == "/Root/C"

    def test_lowercase_type_is_not_a_prim(self):
        assert parse_prim_tree('def xform "Nope" {}') == []

    def test_untyped_log_blocks_are_ignored(self):
        assert parse_prim_tree('def "Log_1" { custom int entry = 0 }') == []

    def test_unmatched_brace_drops_only_that_prim(self):
        text = 'def Xform "Broken" {\n    def Xform "Inner" {\n    }\n'
        prims = parse_prim_tree(text)
        assert [p.path for p in prims] == ["/Inner"]

    def test_empty_input(self):
        assert parse_prim_tree("") == []
        assert get_prim_hierarchy(None) == []

    def test_index_by_path(self, prims):
        index = index_by_path(prims)
        assert set(index) == {"/World", "/World/Floor", "/World/Ball", "/Props"}
        assert index["/World/Ball"].type == "Sphere"


class TestProperties:
    def test_parent_does_not_pick_up_child_properties(self, prims):
        world = prims[0]
        assert world.properties.display_name == "World Root"
        assert world.properties.status == "WIP"
        assert world.properties.display_color is None
        assert world.properties.opacity is None
        assert world.properties.entity_type is None

    def test_leaf_properties(self, prims):
        floor = prims[0].children[0]
        assert floor.properties.display_color == (0.5, 0.25, 1.0)
        assert floor.properties.opacity == pytest.approx(0.5)
        assert floor.properties.entity_type == "Real Element"

    def test_single_quoted_display_name(self):
        prims = parse_prim_tree("def Xform \"A\" {\n custom string primvars:displayName = 'Alpha'\n}")
        assert prims[0].properties.display_name == "Alpha"

    def test_as_dict_omits_unset(self, prims):
        assert prims[0].properties.as_dict() == {"displayName": "World Root", "status": "WIP"}

    def test_custom_data_from_metadata(self):
        text = (
            'def Cube "Box" (\n'
            "    customData = {\n"
            "        bool isWireframe = 1\n"
            '        string origin = "ifc"\n'
            "        int level = 3\n"
            "    }\n"
            ")\n"
            "{\n}\n"
        )
        box = parse_prim_tree(text)[0]
        assert box.custom_data == {"isWireframe": True, "origin": "ifc", "level": 3}


class TestReferences:
    def test_body_reference_with_prim_path(self):
        prims = parse_prim_tree('def Scope "A" { prepend references = @f.usda@</B> }')
        assert len(prims) == 1
        assert prims[0].references == "@f.usda@</B>"
        assert prims[0].payload is None

    def test_deep_reference_path(self):
        text = 'def Scope "Deep" {\n    prepend references = @path/to/asset.usda@</Root/Child/Grandchild>\n}'
        assert parse_prim_tree(text)[0].references == "@path/to/asset.usda@</Root/Child/Grandchild>"

    def test_metadata_reference(self, prims):
        assert prims[0].references == "@base.usda@</World>"

    def test_body_payload(self, prims):
        assert prims[1].payload == "@props.usda@"
        assert prims[1].references is None

    def test_metadata_reference_not_overwritten_by_body(self):
        text = (
            'def Xform "A" (\n    references = @meta.usda@\n)\n'
            "{\n    prepend references = @body.usda@\n    prepend payload = @heavy.usda@\n}\n"
        )
        prim = parse_prim_tree(text)[0]
        assert prim.references == "@meta.usda@"
        assert prim.payload == "@heavy.usda@"

    def test_metadata_payload(self):
        text = 'def Scope "A" (\n    prepend payload = @p.usda@</A>\n)\n{\n}\n'
        prim = parse_prim_tree(text)[0]
        assert prim.payload == "@p.usda@</A>"
        assert prim.references is None

    def test_child_reference_stays_on_child(self):
        text = 'def Xform "P" {\n    def Scope "C" {\n        prepend references = @c.usda@\n    }\n}'
        parent = parse_prim_tree(text)[0]
        assert parent.references is None
        assert parent.children[0].references == "@c.usda@"


class TestAppendToPrim:
    def test_inserts_before_closing_brace(self):
        text = 'def Xform "ChangeLog"\n{\n}\n'
        result = append_to_prim(text, '    def Scope "Entry" {}\n', "ChangeLog")
        log = parse_prim_tree(result)[0]
        assert [c.path for c in log.children] == ["/ChangeLog/Entry"]

    def test_falls_back_to_end_of_layer(self):
        text = 'def Xform "World" {}'
        result = append_to_prim(text, 'def Scope "Tail" {}', "Missing")
        assert result == 'def Xform "World" {}\ndef Scope "Tail" {}'
        assert [p.name for p in parse_prim_tree(result)] == ["World", "Tail"]


def test_paths_match_openusd_traversal():
    pytest.importorskip("pxr")
    from pxr import Sdf, Usd

    text = '''#usda 1.0

def Xform "World"
{
    def Mesh "Floor"
    {
        point3f[] points = [(0, 0, 0), (1, 0, 0), (1, 1, 0)]
        int[] faceVertexIndices = [0, 1, 2]
        int[] faceVertexCounts = [3]
    }

    def Xform "Group"
    {
        def Cube "Box"
        {
            double size = 2
        }
    }
}

over Sphere "Ball"
{
}
'''
    layer = Sdf.Layer.CreateAnonymous(".usda")
    assert layer.ImportFromString(text)
    stage = Usd.Stage.Open(layer)
    expected = sorted(str(prim.GetPath()) for prim in stage.TraverseAll())

    parsed = sorted(index_by_path(parse_prim_tree(text)))
    assert parsed == expected
