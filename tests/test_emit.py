import os
import re
import shutil
import tempfile
import unittest

import yaml

from ansible_lab import config
from ansible_lab import console
from ansible_lab import emit
from ansible_lab.instances import Instance


def _instances(count):
    control = Instance("i-control", "control", "lab-control", "198.51.100.10")
    managed = [
        Instance(f"i-node{k}", "managed", f"lab-node-{k}", f"198.51.100.{10 + k}")
        for k in range(1, count + 1)
    ]
    return control, managed


class TestLabInventory(unittest.TestCase):

    def test_groups_and_hosts(self):
        data = yaml.safe_load(emit.lab_inventory())
        children = data["all"]["children"]
        self.assertEqual(list(children), ["webservers", "databases", "loadbalancers"])
        hosts = {}
        for group in children.values():
            hosts.update(group["hosts"])
        self.assertEqual(
            sorted(hosts),
            ["db1.ansible.lab", "lb1.ansible.lab", "web1.ansible.lab", "web2.ansible.lab"],
        )
        self.assertEqual(hosts["web2.ansible.lab"], {"ansible_host": "web2", "ansible_user": "root"})

    def test_group_vars(self):
        data = yaml.safe_load(emit.lab_inventory())
        self.assertEqual(data["all"]["vars"]["ansible_python_interpreter"], "/usr/bin/python3")
        self.assertEqual(
            data["all"]["vars"]["ansible_ssh_common_args"], "-o StrictHostKeyChecking=no"
        )

    def test_output_is_stable(self):
        self.assertEqual(emit.lab_inventory(), emit.lab_inventory())
        self.assertTrue(emit.lab_inventory().startswith("---\n"))


class TestNginxConfig(unittest.TestCase):

    def test_upstream_and_server_block(self):
        text = emit.nginx_config()
        upstream = re.search(r"upstream webservers \{(.*?)\}", text, re.S)
        self.assertIsNotNone(upstream)
        servers = re.findall(r"^\s*server\s+(\S+);", upstream.group(1), re.M)
        self.assertEqual(servers, ["web1:80", "web2:80"])
        self.assertEqual(len(re.findall(r"^server\s*\{", text, re.M)), 1)
        self.assertEqual(re.findall(r"listen\s+(\d+);", text), ["80"])
        self.assertIn("proxy_pass http://webservers;", text)


class TestPlaybook(unittest.TestCase):

    def test_tasks(self):
        [play] = yaml.safe_load(emit.test_playbook())
        self.assertEqual(play["hosts"], "all")
        self.assertFalse(play["gather_facts"])
        self.assertIn("ansible.builtin.ping", play["tasks"][0])
        self.assertEqual(play["tasks"][1]["ansible.builtin.command"], "python3 --version")
        self.assertEqual(play["tasks"][1]["register"], "python_version")
        self.assertIn("{{ python_version.stdout }}", play["tasks"][2]["ansible.builtin.debug"]["msg"])


class TestComposeFile(unittest.TestCase):

    def test_services(self):
        lab_cfg = config.DEFAULTS["lab"]
        services = yaml.safe_load(emit.compose_file(lab_cfg))["services"]
        self.assertEqual(list(services), ["ansible-control", "web1", "web2", "db1", "lb1"])
        self.assertEqual(services["lb1"]["ports"], ["8081:80"])
        self.assertEqual(services["ansible-control"]["ports"], ["2200:22"])
        self.assertIn(
            "./nginx-config/default.conf:/etc/nginx/conf.d/default.conf:ro",
            services["lb1"]["volumes"],
        )


class TestWriteLabFiles(unittest.TestCase):

    def setUp(self):
        console.configure()
        self._root = tempfile.mkdtemp()
        self._cfg = config.DEFAULTS["lab"]

    def test_all_files_written(self):
        emit.write_lab_files(self._root, self._cfg)
        for rel in ("inventory/hosts.yml", "nginx-config/default.conf",
                    "playbooks/test-connection.yml", "docker-compose.yml"):
            self.assertTrue(os.path.isfile(os.path.join(self._root, rel)), rel)

    def test_existing_compose_file_kept(self):
        compose = os.path.join(self._root, "docker-compose.yml")
        with open(compose, "w", encoding="utf-8") as f:
            f.write("services: {}\n")
        emit.write_lab_files(self._root, self._cfg)
        with open(compose, encoding="utf-8") as f:
            self.assertEqual(f.read(), "services: {}\n")

    def test_rewrite_is_byte_identical(self):
        emit.write_lab_files(self._root, self._cfg)
        path = os.path.join(self._root, "inventory/hosts.yml")
        with open(path, "rb") as f:
            first = f.read()
        emit.write_lab_files(self._root, self._cfg)
        with open(path, "rb") as f:
            self.assertEqual(f.read(), first)

    def tearDown(self):
        shutil.rmtree(self._root)


class TestAwsInventory(unittest.TestCase):

    def _hosts(self, count):
        control, managed = _instances(count)
        data = yaml.safe_load(emit.aws_inventory(control, managed, "ansible-training-x.pem"))
        children = data["all"]["children"]
        return children["control"]["hosts"], children["managed"]["hosts"]

    def test_one_control_and_n_managed(self):
        for count in (1, 2, 8, 20):
            control, managed = self._hosts(count)
            self.assertEqual(list(control), ["control-node"])
            self.assertEqual(list(managed), [f"node-{k}" for k in range(1, count + 1)])
            for host in list(control.values()) + list(managed.values()):
                self.assertTrue(host["ansible_host"])
                self.assertTrue(host["ansible_user"])
                self.assertEqual(host["ansible_ssh_private_key_file"], "ansible-training-x.pem")

    def test_addresses_follow_node_order(self):
        control, managed = self._hosts(2)
        self.assertEqual(control["control-node"]["ansible_host"], "198.51.100.10")
        self.assertEqual(managed["node-1"]["ansible_host"], "198.51.100.11")
        self.assertEqual(managed["node-2"]["ansible_host"], "198.51.100.12")


if __name__ == '__main__':
    unittest.main()
