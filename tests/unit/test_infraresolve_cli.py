"""Unit tests for infraresolve.py CLI commands."""

import json
import sys
import unittest
from pathlib import Path

import yaml
from click.testing import CliRunner

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from infraresolve import cli
from resolver.config_loader import ENVIRONMENT_OVERRIDES

DECLARATIONS = {
    "region": "eu-west-1",
    "vpcs": {
        "default": {"main": {"cidr_block": "10.0.0.0/16"}},
        "prod": {"main": {"cidr_block": "10.30.0.0/16"}},
    },
    "subnets": {"default": {"public-a": {"vpc": "main", "cidr_block": "10.0.0.0/24", "az_index": 1}}},
    "clusters": {"default": {"platform": {"kubernetes_version": "1.34", "subnets": ["public-a"]}}},
    "nodegroups": {"default": {"workers": {"cluster": "platform"}}},
}

SETTINGS = {
    "lookup": "static",
    "availability_zones": {"eu-west-1": ["eu-west-1a", "eu-west-1b"]},
    "images": {"1.34/x86_64": "ami-x86"},
}


class CliFixture(unittest.TestCase):
    def setUp(self):
        self.runner = CliRunner(env={variable: None for variable in ENVIRONMENT_OVERRIDES})

    def write_inputs(self, declarations=None):
        with open("network.yaml", "w") as f:
            yaml.safe_dump(declarations or DECLARATIONS, f)
        with open("settings.yml", "w") as f:
            yaml.safe_dump(SETTINGS, f)


class TestEnvironmentsCommand(CliFixture):
    def test_lists_environments(self):
        with self.runner.isolated_filesystem():
            self.write_inputs()
            result = self.runner.invoke(cli, ["environments", "--source", "network.yaml"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(result.output.split(), ["default", "prod"])

    def test_missing_source(self):
        with self.runner.isolated_filesystem():
            result = self.runner.invoke(cli, ["environments", "--source", "nowhere.yaml"])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("ERROR", result.output)


class TestPreviewCommand(CliFixture):
    def test_prints_resolved_graph(self):
        with self.runner.isolated_filesystem():
            self.write_inputs()
            result = self.runner.invoke(
                cli, ["preview", "--source", "network.yaml", "--config", "settings.yml"]
            )
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn('"availability_zone": "eu-west-1b"', result.output)
        self.assertIn('"instance_image": "ami-x86"', result.output)
        self.assertIn("Nodegroup: 1", result.output)

    def test_reports_resolution_errors(self):
        declarations = dict(DECLARATIONS)
        declarations["subnets"] = {"default": {"public-a": {"vpc": "missing", "cidr_block": "10.0.0.0/24"}}}
        with self.runner.isolated_filesystem():
            self.write_inputs(declarations)
            result = self.runner.invoke(
                cli, ["preview", "--source", "network.yaml", "--config", "settings.yml"]
            )
        self.assertEqual(result.exit_code, 1)
        self.assertIn("references unknown VPC 'missing'", result.output)

    def test_debug_reraises(self):
        declarations = dict(DECLARATIONS)
        declarations["subnets"] = {"default": {"public-a": {"vpc": "main", "cidr_block": "10.0.0.0/24", "az_index": 7}}}
        with self.runner.isolated_filesystem():
            self.write_inputs(declarations)
            result = self.runner.invoke(
                cli, ["preview", "--debug", "--source", "network.yaml", "--config", "settings.yml"]
            )
        self.assertEqual(result.exit_code, 1)
        self.assertEqual(type(result.exception).__name__, "InvalidIndexError")


class TestExportCommand(CliFixture):
    def test_writes_json(self):
        with self.runner.isolated_filesystem():
            self.write_inputs()
            with open("state.json", "w") as f:
                json.dump(
                    {
                        "default": {"vpcs": {"main": "vpc-0123456789abcdef0"}},
                        "prod": {"vpcs": {"main": "vpc-0fedcba9876543210"}},
                    },
                    f,
                )
            result = self.runner.invoke(
                cli,
                [
                    "export",
                    "--source",
                    "network.yaml",
                    "--config",
                    "settings.yml",
                    "--state",
                    "state.json",
                    "--outfile",
                    "plan",
                ],
            )
            self.assertEqual(result.exit_code, 0, result.output)
            with open("plan.json") as f:
                exported = json.load(f)
        self.assertEqual(exported["environment"], "default")
        self.assertEqual(exported["region"], "eu-west-1")
        subnet = exported["resources"]["subnets"]["public-a"]
        self.assertEqual(subnet["references"]["vpc_id"], "vpc-0123456789abcdef0")
        self.assertEqual(exported["resources"]["nodegroups"]["workers"]["id"], "platform:workers")

    def test_missing_state_file(self):
        with self.runner.isolated_filesystem():
            self.write_inputs()
            result = self.runner.invoke(
                cli,
                ["export", "--source", "network.yaml", "--config", "settings.yml", "--state", "state.json"],
            )
        self.assertEqual(result.exit_code, 2)
        self.assertIn("does not exist", result.output)

    def test_state_is_read_per_environment(self):
        with self.runner.isolated_filesystem():
            self.write_inputs()
            with open("state.yaml", "w") as f:
                yaml.safe_dump({"default": {"vpcs": {"main": "vpc-0123456789abcdef0"}}}, f)
            result = self.runner.invoke(
                cli,
                [
                    "export",
                    "--source",
                    "network.yaml",
                    "--config",
                    "settings.yml",
                    "--state",
                    "state.yaml",
                    "--environment",
                    "prod",
                ],
            )
            with open("resolved.json") as f:
                exported = json.load(f)
        self.assertEqual(result.exit_code, 0, result.output)
        vpc_id = exported["resources"]["vpcs"]["main"]["id"]
        self.assertTrue(vpc_id.startswith("vpc-"))
        self.assertNotEqual(vpc_id, "vpc-0123456789abcdef0")

    def test_other_environment(self):
        with self.runner.isolated_filesystem():
            self.write_inputs()
            result = self.runner.invoke(
                cli,
                ["export", "--source", "network.yaml", "--config", "settings.yml", "--environment", "prod"],
            )
            with open("resolved.json") as f:
                exported = json.load(f)
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(exported["environment"], "prod")
        self.assertEqual(list(exported["resources"]["vpcs"]), ["main"])
        self.assertEqual(exported["resources"]["subnets"], {})


class TestGraphCommand(CliFixture):
    def test_writes_dot_source(self):
        with self.runner.isolated_filesystem():
            self.write_inputs()
            result = self.runner.invoke(cli, ["graph", "--source", "network.yaml", "--outfile", "deps"])
            with open("deps.dot") as f:
                source = f.read()
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("digraph infraresolve", source)
        self.assertIn("Subnet\\n(1)", source)


if __name__ == "__main__":
    unittest.main()
