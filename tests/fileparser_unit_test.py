import json
import os
import sys
import tempfile
import unittest

parent_dir = os.path.dirname(os.path.dirname(os.path.realpath(__file__)))
sys.path.append(parent_dir)

from resolver.exceptions import DocumentParsingError
from resolver.fileparser import (
    find_declaration_files,
    load_known_ids,
    merge_document,
    normalise_collection,
    parse_file,
    read_document,
    strip_quotes,
)

TFVARS = """
region = "eu-west-1"

vpcs = {
  default = {
    main = {
      cidr_block = "10.0.0.0/16"
    }
  }
}
"""

YAML_SUBNETS = """
subnets:
  default:
    - name: public-a
      vpc: main
      cidr_block: 10.0.0.0/24
      az_index: 0
  qe:
    public-a:
      vpc: main
      cidr_block: 10.20.0.0/24
"""


class FileFixture(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)

    def write(self, filename, content):
        path = os.path.join(self.tmp.name, filename)
        with open(path, "w", encoding="utf8") as f:
            f.write(content)
        return path


class TestStripQuotes(unittest.TestCase):
    def test_nested_values(self):
        self.assertEqual(
            strip_quotes({'"a"': ['"b"', 1], "c": '"d"'}),
            {"a": ["b", 1], "c": "d"},
        )

    def test_plain_strings_unchanged(self):
        self.assertEqual(strip_quotes("main"), "main")
        self.assertEqual(strip_quotes('"'), '"')


class TestParseFile(FileFixture):
    def test_parse_tfvars(self):
        data = parse_file(self.write("network.tfvars", TFVARS))
        self.assertEqual(data["region"], "eu-west-1")
        self.assertEqual(data["vpcs"]["default"]["main"]["cidr_block"], "10.0.0.0/16")

    def test_parse_yaml(self):
        data = parse_file(self.write("subnets.yaml", YAML_SUBNETS))
        self.assertEqual(data["subnets"]["default"][0]["name"], "public-a")

    def test_parse_json(self):
        data = parse_file(self.write("eips.json", json.dumps({"elastic_ips": {"default": {"nat": {}}}})))
        self.assertEqual(data, {"elastic_ips": {"default": {"nat": {}}}})

    def test_empty_yaml_is_empty_document(self):
        self.assertEqual(parse_file(self.write("empty.yml", "")), {})

    def test_missing_file(self):
        with self.assertRaises(DocumentParsingError):
            parse_file(os.path.join(self.tmp.name, "missing.yaml"))

    def test_unsupported_suffix(self):
        with self.assertRaises(DocumentParsingError) as ctx:
            parse_file(self.write("notes.txt", "vpcs: {}"))
        self.assertIn("Unsupported", ctx.exception.message)

    def test_malformed_json(self):
        with self.assertRaises(DocumentParsingError) as ctx:
            parse_file(self.write("broken.json", "{not json"))
        self.assertIn("filepath", ctx.exception.context)

    def test_top_level_must_be_mapping(self):
        with self.assertRaises(DocumentParsingError):
            parse_file(self.write("list.yaml", "- a\n- b\n"))


class TestNormaliseCollection(unittest.TestCase):
    def test_mapping_form(self):
        records = normalise_collection({"main": {"cidr_block": "10.0.0.0/16"}, "empty": None}, "vpcs", "default", "f")
        self.assertEqual(records, [{"cidr_block": "10.0.0.0/16", "name": "main"}, {"name": "empty"}])

    def test_list_form_keeps_duplicates(self):
        records = normalise_collection([{"name": "a"}, {"name": "a"}], "vpcs", "default", "f")
        self.assertEqual(len(records), 2)

    def test_list_entry_without_name(self):
        with self.assertRaises(DocumentParsingError) as ctx:
            normalise_collection([{"cidr_block": "10.0.0.0/16"}], "vpcs", "default", "f")
        self.assertEqual(ctx.exception.context["position"], 0)

    def test_attributes_must_be_mapping(self):
        with self.assertRaises(DocumentParsingError):
            normalise_collection({"main": "10.0.0.0/16"}, "vpcs", "default", "f")

    def test_scalar_collection_rejected(self):
        with self.assertRaises(DocumentParsingError):
            normalise_collection("main", "vpcs", "default", "f")


class TestMergeDocument(unittest.TestCase):
    def test_collections_concatenate_per_environment(self):
        document = merge_document({}, {"vpcs": {"default": {"a": {}}}}, "one")
        document = merge_document(document, {"vpcs": {"default": {"b": {}}, "qe": {"a": {}}}}, "two")
        self.assertEqual([r["name"] for r in document["vpcs"]["default"]], ["a", "b"])
        self.assertEqual([r["name"] for r in document["vpcs"]["qe"]], ["a"])

    def test_unknown_keys_are_ignored(self):
        with self.assertLogs("resolver.fileparser", level="WARNING") as logs:
            document = merge_document({}, {"buckets": {"default": {}}}, "f")
        self.assertEqual(document, {})
        self.assertIn("buckets", logs.output[0])

    def test_settings_merge(self):
        document = merge_document({}, {"tags": {"Team": "net"}, "region": "eu-west-1"}, "one")
        document = merge_document(document, {"tags": {"Owner": "ops"}, "region": "us-east-1"}, "two")
        self.assertEqual(document["tags"], {"Team": "net", "Owner": "ops"})
        self.assertEqual(document["region"], "us-east-1")

    def test_collection_must_be_keyed_by_environment(self):
        with self.assertRaises(DocumentParsingError):
            merge_document({}, {"vpcs": [{"name": "main"}]}, "f")


class TestReadDocument(FileFixture):
    def test_reads_directory(self):
        self.write("network.tfvars", TFVARS)
        self.write("subnets.yaml", YAML_SUBNETS)
        self.write("main.tf", 'resource "aws_vpc" "x" {}')
        self.write("README.md", "docs")
        files = find_declaration_files((self.tmp.name,))
        self.assertEqual([os.path.basename(f) for f in files], ["network.tfvars", "subnets.yaml"])
        document = read_document((self.tmp.name,))
        self.assertEqual(document["vpcs"]["default"][0]["name"], "main")
        self.assertEqual(sorted(document["subnets"]), ["default", "qe"])

    def test_empty_source(self):
        with self.assertRaises(DocumentParsingError):
            read_document((self.tmp.name,))


class TestLoadKnownIds(FileFixture):
    def test_json_state_with_document_keys_and_type_names(self):
        path = self.write(
            "state.json",
            json.dumps({"default": {"vpcs": {"main": "vpc-0abc"}, "Subnet": {"public-a": "subnet-0def"}}}),
        )
        self.assertEqual(
            load_known_ids(path, "default"),
            {"VPC": {"main": "vpc-0abc"}, "Subnet": {"public-a": "subnet-0def"}},
        )

    def test_yaml_state(self):
        path = self.write("state.yaml", "default:\n  security_groups:\n    web: sg-0123\n  buckets:\n    a: b\n")
        self.assertEqual(load_known_ids(path, "default"), {"SecurityGroup": {"web": "sg-0123"}})

    def test_other_environments_are_not_returned(self):
        path = self.write(
            "state.yaml",
            "default:\n  vpcs:\n    main: vpc-default\nprod:\n  vpcs:\n    main: vpc-prod\n",
        )
        self.assertEqual(load_known_ids(path, "prod"), {"VPC": {"main": "vpc-prod"}})
        self.assertEqual(load_known_ids(path, "qe"), {})

    def test_state_must_be_mapping(self):
        path = self.write("state.yaml", "- vpc-0abc\n")
        with self.assertRaises(DocumentParsingError):
            load_known_ids(path, "default")

    def test_flat_state_rejected(self):
        path = self.write("state.json", json.dumps({"vpcs": {"main": "vpc-0abc"}, "region": "eu-west-1"}))
        with self.assertRaises(DocumentParsingError):
            load_known_ids(path, "default")

    def test_entries_must_map_names(self):
        path = self.write("state.yaml", "default:\n  vpcs:\n    - vpc-0abc\n")
        with self.assertRaises(DocumentParsingError) as ctx:
            load_known_ids(path, "default")
        self.assertEqual(ctx.exception.context["key"], "vpcs")

    def test_missing_state_file(self):
        with self.assertRaises(DocumentParsingError) as ctx:
            load_known_ids(os.path.join(self.tmp.name, "state.json"), "default")
        self.assertIn("filepath", ctx.exception.context)


if __name__ == "__main__":
    unittest.main()
