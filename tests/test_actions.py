import random
import unittest

from studybridge.actions import (
    ACTIONS,
    MAX_TOPIC_NAME,
    build_generation_request,
    layout_mindmap,
    postprocess,
)
from studybridge.errors import ClientRequestInvalid


class TestBuildGenerationRequest(unittest.TestCase):
    def test_all_actions_are_known(self):
        self.assertEqual(
            set(ACTIONS),
            {"subdivide_topic", "expand_topics", "study_content", "summary", "flashcards", "essay", "mindmap"},
        )

    def test_flashcards_request(self):
        action, request = build_generation_request({"action": "flashcards", "topic": {"name": "Cell biology"}})
        self.assertEqual(action, "flashcards")
        self.assertEqual(request.schema, {"flashcards": [{"front": "string", "back": "string"}]})
        self.assertEqual([m["role"] for m in request.messages], ["system", "user"])
        self.assertIn("Cell biology", request.messages[1]["content"])

    def test_defaults_for_missing_names(self):
        _, request = build_generation_request({"action": "subdivide_topic"})
        prompt = request.messages[1]["content"]
        self.assertIn("Unknown topic", prompt)
        self.assertIn("General", prompt)

    def test_long_topic_is_truncated(self):
        _, request = build_generation_request({"action": "subdivide_topic", "topic": {"name": "x" * 900}})
        prompt = request.messages[1]["content"]
        self.assertIn("x" * MAX_TOPIC_NAME + "...", prompt)
        self.assertNotIn("x" * (MAX_TOPIC_NAME + 1), prompt)

    def test_expand_topics_lists_existing(self):
        _, request = build_generation_request(
            {
                "action": "expand_topics",
                "subject": {"name": "Law"},
                "existingTopics": [{"name": "Contracts"}, {"name": "Torts"}, {}],
            }
        )
        self.assertIn("Contracts, Torts", request.messages[1]["content"])

    def test_unknown_action(self):
        with self.assertRaises(ClientRequestInvalid) as ctx:
            build_generation_request({"action": "dance"})
        self.assertEqual(ctx.exception.code, "INVALID_ACTION")

    def test_missing_action_and_bad_body(self):
        with self.assertRaises(ClientRequestInvalid):
            build_generation_request({})
        with self.assertRaises(ClientRequestInvalid):
            build_generation_request("flashcards")


class TestMindmapLayout(unittest.TestCase):
    def test_radial_layout(self):
        result = {
            "nodes": [
                {"text": "Child A", "isRoot": False, "children": ["A1", "A2"]},
                {"text": "Photosynthesis", "isRoot": True},
                {"text": "Child B"},
            ]
        }
        laid_out = layout_mindmap(result, rng=random.Random(1))

        nodes = {node["id"]: node for node in laid_out["nodes"]}
        self.assertEqual(nodes["root"]["text"], "Photosynthesis")
        self.assertEqual((nodes["root"]["x"], nodes["root"]["y"]), (400.0, 300.0))
        self.assertAlmostEqual(nodes["node-0"]["x"], 600.0)
        self.assertEqual(set(nodes), {"root", "node-0", "node-1", "node-0-0", "node-0-1"})
        self.assertIn({"id": "c-0-1", "from": "node-0", "to": "node-0-1"}, laid_out["connections"])
        self.assertEqual(len(laid_out["connections"]), 4)

    def test_first_node_is_root_without_flag(self):
        laid_out = layout_mindmap({"nodes": [{"text": "Main"}, {"text": "Leaf"}]})
        self.assertEqual(laid_out["nodes"][0]["text"], "Main")

    def test_passthrough_without_nodes(self):
        self.assertEqual(layout_mindmap({"summary": "x"}), {"summary": "x"})
        self.assertEqual(layout_mindmap({"nodes": []}), {"nodes": []})

    def test_postprocess_only_touches_mindmap(self):
        self.assertEqual(postprocess("summary", {"nodes": [{"text": "a"}]}), {"nodes": [{"text": "a"}]})
        self.assertIn("connections", postprocess("mindmap", {"nodes": [{"text": "a"}]}))


if __name__ == "__main__":
    unittest.main()
