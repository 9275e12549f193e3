import copy

import pytest

from comfygraph.equivalence import node_content_hash, structural_diff
from comfygraph.ir import Node
from comfygraph.workflow import Workflow

from conftest import rename_ids


def test_reflexive(sample_workflow):
    wf = Workflow.from_json(sample_workflow)
    assert wf.is_structurally_equivalent_to(wf)
    assert wf.get_structural_diff(wf) == []


def test_empty_workflows_are_equivalent():
    assert Workflow().is_structurally_equivalent_to(Workflow())


def test_invariant_under_id_renaming(sample_workflow):
    mapping = {nid: f"n{int(nid) * 7}" for nid in sample_workflow}
    original = Workflow.from_json(sample_workflow)
    renamed = Workflow.from_json(rename_ids(sample_workflow, mapping))
    assert original.is_structurally_equivalent_to(renamed)
    assert renamed.is_structurally_equivalent_to(original)


def test_end_to_end_renamed_graph():
    a = Workflow()
    a.add_node("VAELoader", {"vae_name": "m.safetensors"}, node_id="1")
    a.add_node("KSampler", {"steps": 20}, node_id="2")
    a.add_edge("1", 0, "2", "model")

    b = Workflow()
    b.add_node("VAELoader", {"vae_name": "m.safetensors"}, node_id="99")
    b.add_node("KSampler", {"steps": 20}, node_id="100")
    b.add_edge("99", 0, "100", "model")

    assert a.is_structurally_equivalent_to(b)


def test_extra_node_gives_single_count_mismatch(sample_workflow):
    reference = Workflow.from_json(sample_workflow)
    subject = Workflow.from_json(sample_workflow)
    subject.add_node("CLIPTextEncode", {"text": "third"})

    diffs = subject.get_structural_diff(reference)
    assert len(diffs) == 1
    assert diffs[0].type == "class_type_count_mismatch"
    assert diffs[0].class_type == "CLIPTextEncode"
    assert (diffs[0].expected, diffs[0].actual) == (2, 3)
    assert diffs[0].details == "CLIPTextEncode: expected 2 nodes, got 3"


def test_new_class_gives_count_mismatch():
    subject = Workflow()
    subject.add_node("LoadImage", {"image": "a.png"})
    diffs = subject.get_structural_diff(Workflow())
    assert [(d.type, d.class_type, d.expected, d.actual) for d in diffs] == [
        ("class_type_count_mismatch", "LoadImage", 0, 1)
    ]


def test_count_mismatch_suppresses_input_diffs():
    subject = Workflow()
    subject.add_node("LoadImage", {"image": "a.png"})
    reference = Workflow()
    reference.add_node("LoadImage", {"image": "b.png"})
    reference.add_node("LoadImage", {"image": "c.png"})
    assert [d.type for d in subject.get_structural_diff(reference)] == ["class_type_count_mismatch"]


def test_literal_mismatch():
    subject = Workflow()
    subject.add_node("KSampler", {"steps": 20}, node_id="1")
    reference = Workflow()
    reference.add_node("KSampler", {"steps": 30}, node_id="1")

    diffs = subject.get_structural_diff(reference)
    assert len(diffs) == 1
    d = diffs[0]
    assert (d.type, d.class_type, d.input_name) == ("input_mismatch", "KSampler", "steps")
    assert (d.expected, d.actual) == (30, 20)
    assert d.details == 'Input "steps": expected 30, got 20'


def test_missing_and_extra_inputs_have_distinct_messages():
    subject = Workflow()
    subject.add_node("KSampler", {"extra": "value"})
    reference = Workflow()
    reference.add_node("KSampler", {"steps": 20})

    diffs = subject.get_structural_diff(reference)
    by_input = {d.input_name: d for d in diffs}
    assert "extra in this workflow" in by_input["extra"].details
    assert (by_input["extra"].expected, by_input["extra"].actual) == (None, "value")
    assert "missing in this workflow" in by_input["steps"].details
    assert (by_input["steps"].expected, by_input["steps"].actual) == (20, None)


def test_null_literal_differs_from_missing_input():
    subject = Workflow()
    subject.add_node("A", {"x": None})
    reference = Workflow()
    reference.add_node("A")
    diffs = subject.get_structural_diff(reference)
    assert len(diffs) == 1
    assert "extra" in diffs[0].details


@pytest.mark.parametrize("left,right,equal", [
    (1, 1.0, True),
    (True, 1, False),
    (False, 0, False),
    ("1", 1, False),
    ({"a": 1, "b": 2}, {"b": 2, "a": 1}, True),
    (None, None, True),
])
def test_literal_equality_is_json_equality(left, right, equal):
    subject = Workflow()
    subject.add_node("A", {"x": left})
    reference = Workflow()
    reference.add_node("A", {"x": right})
    assert subject.is_structurally_equivalent_to(reference) is equal


def test_connection_target_type_mismatch():
    subject = Workflow()
    subject.add_node("VAELoader", node_id="1")
    subject.add_node("KSampler", node_id="2")
    subject.add_node("VAEEncode", node_id="3")
    subject.add_edge("1", 0, "3", "vae")

    reference = Workflow()
    reference.add_node("VAELoader", node_id="1")
    reference.add_node("KSampler", node_id="2")
    reference.add_node("VAEEncode", node_id="3")
    reference.add_edge("2", 0, "3", "vae")

    diffs = subject.get_structural_diff(reference)
    assert len(diffs) == 1
    d = diffs[0]
    assert (d.type, d.class_type, d.input_name) == ("connection_mismatch", "VAEEncode", "vae")
    assert (d.expected, d.actual) == ("KSampler:0", "VAELoader:0")


def test_connection_same_source_type_different_ids():
    subject = Workflow()
    subject.add_node("VAELoader", node_id="1")
    subject.add_node("VAEEncode", node_id="2")
    subject.add_edge("1", 0, "2", "vae")

    reference = Workflow()
    reference.add_node("VAELoader", node_id="a")
    reference.add_node("VAEEncode", node_id="b")
    reference.add_edge("a", 0, "b", "vae")

    assert subject.get_structural_diff(reference) == []


def test_connection_port_matters():
    subject = Workflow()
    subject.add_node("CheckpointLoaderSimple", node_id="1")
    subject.add_node("VAEDecode", node_id="2")
    subject.add_edge("1", 2, "2", "vae")

    reference = Workflow()
    reference.add_node("CheckpointLoaderSimple", node_id="1")
    reference.add_node("VAEDecode", node_id="2")
    reference.add_edge("1", 1, "2", "vae")

    diffs = subject.get_structural_diff(reference)
    assert [(d.type, d.expected, d.actual) for d in diffs] == [
        ("connection_mismatch", "CheckpointLoaderSimple:1", "CheckpointLoaderSimple:2")
    ]


def test_connection_versus_literal_is_type_mismatch():
    subject = Workflow()
    subject.add_node("LoadImage", node_id="1")
    subject.add_node("VAEEncode", node_id="2")
    subject.add_edge("1", 0, "2", "pixels")

    reference = Workflow()
    reference.add_node("LoadImage", node_id="1")
    reference.add_node("VAEEncode", {"pixels": "img.png"}, node_id="2")

    diffs = subject.get_structural_diff(reference)
    assert len(diffs) == 1
    d = diffs[0]
    assert d.type == "input_mismatch"
    assert "type mismatch" in d.details
    assert (d.expected, d.actual) == ("img.png", ["1", 0])


def test_dangling_connections_normalize_to_unknown():
    subject = Workflow.from_json({"1": {"inputs": {"x": ["404", 0]}, "class_type": "A"}})
    reference = Workflow.from_json({"7": {"inputs": {"x": ["missing", 0]}, "class_type": "A"}})
    assert subject.is_structurally_equivalent_to(reference)


def test_multi_node_class_matches_regardless_of_order():
    subject = Workflow()
    subject.add_node("LoadImage", {"image": "a.png"}, node_id="1")
    subject.add_node("LoadImage", {"image": "b.png"}, node_id="2")

    reference = Workflow()
    reference.add_node("LoadImage", {"image": "b.png"}, node_id="20")
    reference.add_node("LoadImage", {"image": "a.png"}, node_id="10")

    assert subject.is_structurally_equivalent_to(reference)


def test_multi_node_class_reports_one_illustrative_mismatch():
    subject = Workflow()
    for image in ["a.png", "x.png", "y.png"]:
        subject.add_node("LoadImage", {"image": image})

    reference = Workflow()
    for image in ["p.png", "a.png", "q.png"]:
        reference.add_node("LoadImage", {"image": image})

    diffs = subject.get_structural_diff(reference)
    assert len(diffs) == 1
    d = diffs[0]
    assert (d.type, d.class_type, d.input_name) == ("input_mismatch", "LoadImage", "image")
    # first unmatched subject node against first unmatched reference node
    assert (d.expected, d.actual) == ("p.png", "x.png")


def test_multi_node_matching_uses_source_class(sample_workflow):
    reference = Workflow.from_json(sample_workflow)
    changed = copy.deepcopy(sample_workflow)
    changed["7"]["inputs"]["text"] = "low quality"
    subject = Workflow.from_json(changed)

    diffs = subject.get_structural_diff(reference)
    assert len(diffs) == 1
    assert diffs[0].class_type == "CLIPTextEncode"
    assert (diffs[0].expected, diffs[0].actual) == ("ugly, blurry", "low quality")


def test_diff_emptiness_is_symmetric(sample_workflow):
    base = Workflow.from_json(sample_workflow)
    variants = [Workflow(), Workflow.from_json(sample_workflow)]
    variants[1].set_input("3", "steps", 30)
    variants.append(Workflow.from_json(sample_workflow))
    variants[2].remove_node("5")
    for other in variants:
        assert bool(base.get_structural_diff(other)) == bool(other.get_structural_diff(base))


def test_content_hash_is_id_independent():
    nodes_a = {
        "1": Node(class_type="VAELoader", inputs={}),
        "2": Node(class_type="VAEEncode", inputs={"vae": ["1", 0], "crop": "center"}),
    }
    nodes_b = {
        "x": Node(class_type="VAELoader", inputs={}),
        "y": Node(class_type="VAEEncode", inputs={"crop": "center", "vae": ["x", 0]}),
    }
    assert node_content_hash(nodes_a["2"], nodes_a) == node_content_hash(nodes_b["y"], nodes_b)
    assert structural_diff(nodes_a, nodes_b) == []


def test_content_hash_separates_input_names_from_values():
    nodes = {
        "1": Node(class_type="X", inputs={"a": 1, "b": 2}),
        "2": Node(class_type="X", inputs={"a:1|b": 2}),
    }
    assert node_content_hash(nodes["1"], nodes) != node_content_hash(nodes["2"], nodes)


def test_multi_node_class_with_punctuated_input_names_is_not_equivalent():
    subject = Workflow()
    subject.add_node("X", {"a": 1, "b": 2})
    subject.add_node("X", {"z": 0})

    reference = Workflow()
    reference.add_node("X", {"a:1|b": 2})
    reference.add_node("X", {"z": 0})

    diffs = subject.get_structural_diff(reference)
    assert not subject.is_structurally_equivalent_to(reference)
    assert {d.input_name for d in diffs} == {"a", "b", "a:1|b"}
