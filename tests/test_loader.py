"""
Tests for YAML pipeline definitions: validation, action resolution, building
"""
import os
import shutil
import tempfile
import unittest

import yaml

from railway.pipeline.action import ERROR, SUCCESS, TERMINATE, Action, ActionResult, FunctionAction
from railway.pipeline.context import RunContext
from railway.pipeline.loader import build_pipelines, load_pipelines, resolve_action
from railway.pipeline.pipeline_engine import Pipeline
from railway.pipeline.schema_validator import DefinitionValidator
from railway.utils.exceptions import DefinitionError, InvalidRunPlanError


class Fails(Action):
    """Always signals ERROR"""

    def execute(self, ctx, value):
        return ActionResult(value, ERROR, RuntimeError("nope"))


ALWAYS_FAILS = Fails("always_fails")


class TestDefinitionValidator(unittest.TestCase):
    """Test structural and cross-field validation"""

    def setUp(self):
        """Create validator"""
        self.validator = DefinitionValidator()

    def test_valid_definition(self):
        """Test a well-formed definition passes"""
        definition = {
            "actions": {"a": "builtins:str.strip"},
            "pipelines": [
                {"name": "p", "members": ["a", "b"], "plans": {"a": {"error": "b"}, "b": None}},
            ],
        }
        is_valid, errors = self.validator.validate(definition)
        self.assertTrue(is_valid)
        self.assertEqual(errors, [])

    def test_not_an_object(self):
        """Test top-level must be a mapping"""
        is_valid, errors = self.validator.validate(["nope"])
        self.assertFalse(is_valid)
        self.assertIn("Expected object", errors[0])

    def test_missing_fields(self):
        """Test required fields are reported together"""
        is_valid, errors = self.validator.validate({"pipelines": [{"members": []}]})
        self.assertFalse(is_valid)
        self.assertTrue(any("name: Required field missing" in e for e in errors))
        self.assertTrue(any("Array too short" in e for e in errors))

    def test_wrong_types(self):
        """Test types are checked at every level"""
        definition = {
            "actions": {"a": 3},
            "pipelines": [{"name": "p", "members": "a", "plans": {"a": {"success": 1}}}],
        }
        is_valid, errors = self.validator.validate(definition)
        self.assertFalse(is_valid)
        self.assertIn("definition.actions.a: Expected string, got int", errors)
        self.assertIn("definition.pipelines[0].members: Expected array, got str", errors)
        self.assertIn("definition.pipelines[0].plans.a.success: Expected string, got int", errors)

    def test_duplicate_pipeline_names(self):
        """Test pipeline names must be unique"""
        definition = {"pipelines": [{"name": "p", "members": ["a"]}, {"name": "p", "members": ["b"]}]}
        is_valid, errors = self.validator.validate(definition)
        self.assertFalse(is_valid)
        self.assertIn("Duplicate pipeline name 'p'", errors[0])

    def test_duplicate_members(self):
        """Test a member can appear once"""
        is_valid, errors = self.validator.validate({"pipelines": [{"name": "p", "members": ["a", "b", "a"]}]})
        self.assertFalse(is_valid)
        self.assertIn("Duplicate members ['a']", errors[0])

    def test_self_containing_pipeline(self):
        """Test a pipeline can't list itself"""
        is_valid, errors = self.validator.validate({"pipelines": [{"name": "p", "members": ["p"]}]})
        self.assertFalse(is_valid)

    def test_plan_for_non_member(self):
        """Test plans only for members"""
        definition = {"pipelines": [{"name": "p", "members": ["a"], "plans": {"z": {"success": "a"}}}]}
        is_valid, errors = self.validator.validate(definition)
        self.assertFalse(is_valid)
        self.assertIn("Plan for non-member 'z'", errors[0])

    def test_terminate_name_reserved(self):
        """Test 'terminate' can't name an action, a pipeline or a member"""
        definition = {
            "actions": {"terminate": "builtins:str.strip"},
            "pipelines": [{"name": "terminate", "members": ["a", "terminate"]}],
        }
        is_valid, errors = self.validator.validate(definition)
        self.assertFalse(is_valid)
        self.assertIn("definition.actions.terminate: 'terminate' is reserved for plan targets", errors)
        self.assertIn("definition.pipelines[0].name: 'terminate' is reserved for plan targets", errors)
        self.assertIn("definition.pipelines[0].members: 'terminate' cannot be a member", errors)


class TestResolveAction(unittest.TestCase):
    """Test import path resolution"""

    def test_plain_callable_wrapped(self):
        """Test a function becomes a FunctionAction"""
        action = resolve_action("strip", "builtins:str.strip")
        self.assertIsInstance(action, FunctionAction)
        self.assertEqual(action.name, "strip")
        self.assertEqual(action.execute(RunContext.background(), " x ").output, "x")

    def test_action_instance_used_as_is(self):
        """Test module-level Action instances are shared"""
        self.assertIs(resolve_action("f", f"{__name__}:ALWAYS_FAILS"), ALWAYS_FAILS)

    def test_action_class_instantiated(self):
        """Test Action subclasses are built with the registry name"""
        action = resolve_action("failing", f"{__name__}:Fails")
        self.assertIsInstance(action, Fails)
        self.assertEqual(action.name, "failing")

    def test_bad_paths(self):
        """Test malformed, missing and non-callable targets"""
        for path in ["no_colon", "no.such.module:thing", "builtins:not_there", "string:ascii_letters"]:
            with self.assertRaises(DefinitionError):
                resolve_action("x", path)

    def test_action_class_needing_arguments(self):
        """Test constructor failures surface as DefinitionError"""
        with self.assertRaises(DefinitionError) as cm:
            resolve_action("x", "railway.pipeline.action:FunctionAction")
        self.assertIsInstance(cm.exception.__cause__, TypeError)


class TestBuildPipelines(unittest.TestCase):
    """Test building pipelines from definitions"""

    def setUp(self):
        """Registry of plain actions"""
        self.registry = {
            "strip": FunctionAction("strip", str.strip),
            "title": FunctionAction("title", str.title),
            "fail": Fails("fail"),
            "shout": FunctionAction("shout", lambda v: v.upper() + "!"),
        }

    def test_straight_line(self):
        """Test members run in order"""
        pipelines = build_pipelines({"pipelines": [{"name": "clean", "members": ["strip", "title"]}]}, self.registry)

        result = pipelines["clean"].run(RunContext.background(), "  hello world ")

        self.assertEqual(result.output, "Hello World")
        self.assertEqual(result.direction, SUCCESS)

    def test_nested_by_name(self):
        """Test later pipelines can use earlier ones as members"""
        definition = {
            "pipelines": [
                {"name": "clean", "members": ["strip", "title"]},
                {"name": "main", "members": ["clean", "shout"]},
            ]
        }
        pipelines = build_pipelines(definition, self.registry)

        self.assertIsInstance(pipelines["main"].init_action, Pipeline)
        self.assertEqual(pipelines["main"].run(RunContext.background(), " hi ").output, "HI!")

    def test_plans_applied(self):
        """Test plan entries route by name, including terminate"""
        definition = {
            "pipelines": [
                {
                    "name": "recover",
                    "members": ["fail", "strip", "shout"],
                    "plans": {"fail": {"error": "shout", "success": "terminate"}},
                }
            ]
        }
        pipeline = build_pipelines(definition, self.registry)["recover"]

        self.assertIs(pipeline.run_plan(self.registry["fail"])[SUCCESS], TERMINATE)
        result = pipeline.run(RunContext.background(), "x")
        self.assertEqual(result.output, "X!")
        self.assertEqual(result.direction, ERROR)

    def test_actions_section_resolved(self):
        """Test actions listed in the file are imported"""
        definition = {
            "actions": {"upper": "builtins:str.upper"},
            "pipelines": [{"name": "p", "members": ["strip", "upper"]}],
        }
        pipeline = build_pipelines(definition, self.registry)["p"]
        self.assertEqual(pipeline.run(RunContext.background(), " a ").output, "A")

    def test_registry_wins_over_actions_section(self):
        """Test pre-registered actions aren't replaced"""
        definition = {
            "actions": {"strip": "builtins:str.upper"},
            "pipelines": [{"name": "p", "members": ["strip", "title"]}],
        }
        pipeline = build_pipelines(definition, self.registry)["p"]
        self.assertIs(pipeline.init_action, self.registry["strip"])

    def test_invalid_definition(self):
        """Test structural errors are collected on the exception"""
        with self.assertRaises(DefinitionError) as cm:
            build_pipelines({"pipelines": []})
        self.assertTrue(cm.exception.errors)

    def test_unknown_member(self):
        """Test members must be registered"""
        with self.assertRaises(DefinitionError):
            build_pipelines({"pipelines": [{"name": "p", "members": ["ghost"]}]}, self.registry)

    def test_unknown_plan_target(self):
        """Test plan targets must be registered"""
        definition = {"pipelines": [{"name": "p", "members": ["strip"], "plans": {"strip": {"error": "ghost"}}}]}
        with self.assertRaises(DefinitionError):
            build_pipelines(definition, self.registry)

    def test_plan_rules_enforced(self):
        """Test pipeline-level validation still applies (self loop)"""
        definition = {
            "pipelines": [{"name": "p", "members": ["strip", "title"], "plans": {"strip": {"error": "strip"}}}]
        }
        with self.assertRaises(InvalidRunPlanError):
            build_pipelines(definition, self.registry)

    def test_registry_cannot_shadow_terminate(self):
        """Test a registry entry named 'terminate' is rejected"""
        registry = dict(self.registry, terminate=FunctionAction("terminate", str))
        definition = {"pipelines": [{"name": "p", "members": ["strip"], "plans": {"strip": {"error": "terminate"}}}]}
        with self.assertRaises(DefinitionError):
            build_pipelines(definition, registry)


class TestLoadPipelines(unittest.TestCase):
    """Test loading definitions from disk"""

    def setUp(self):
        """Create temp directory"""
        self.tmp_dir = tempfile.mkdtemp()

    def tearDown(self):
        """Remove temp directory"""
        shutil.rmtree(self.tmp_dir)

    def test_load_from_file(self):
        """Test YAML file round trip into runnable pipelines"""
        path = os.path.join(self.tmp_dir, "pipeline.yaml")
        with open(path, "w") as f:
            yaml.safe_dump({
                "actions": {"strip": "builtins:str.strip", "upper": "builtins:str.upper"},
                "pipelines": [{"name": "p", "members": ["strip", "upper"]}],
            }, f)

        pipelines = load_pipelines(path)

        self.assertEqual(pipelines["p"].run(RunContext.background(), " ok ").output, "OK")

    def test_missing_file(self):
        """Test missing definition raises FileNotFoundError"""
        with self.assertRaises(FileNotFoundError):
            load_pipelines(os.path.join(self.tmp_dir, "missing.yaml"))

    def test_malformed_yaml(self):
        """Test unparsable files raise DefinitionError"""
        path = os.path.join(self.tmp_dir, "broken.yaml")
        with open(path, "w") as f:
            f.write("pipelines: [{name: p, members: [a\n")
        with self.assertRaises(DefinitionError):
            load_pipelines(path)

    def test_example_definition(self):
        """Test the shipped example builds and runs"""
        root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
        pipelines = load_pipelines(os.path.join(root, "config", "pipeline.yaml"))

        result = pipelines["shout"].run(RunContext.background(), "  hello world  ")

        self.assertEqual(result.output, "HELLO WORLD")
        self.assertEqual(result.direction, SUCCESS)


if __name__ == '__main__':
    unittest.main()
