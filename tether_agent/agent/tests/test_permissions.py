import json
import unittest

from tether_agent.agent.permissions import (
    DEFAULT_TOOL_PERMISSIONS,
    Permission,
    PermissionConfig,
    PermissionManager,
    wildcard_match,
)


def _bash(command: str) -> str:
    return json.dumps({"command": command})


class TestWildcardMatch(unittest.TestCase):
    def test_trailing_star_is_a_prefix_match(self) -> None:
        self.assertTrue(wildcard_match("git *", "git status"))
        self.assertTrue(wildcard_match("git *", "git"))
        self.assertFalse(wildcard_match("git *", "npm install"))

    def test_prefix_match_does_not_require_a_word_boundary(self) -> None:
        self.assertTrue(wildcard_match("git *", "gitk --all"))

    def test_other_patterns_require_exact_equality(self) -> None:
        self.assertTrue(wildcard_match("ls", "ls"))
        self.assertFalse(wildcard_match("ls", "ls -la"))
        self.assertFalse(wildcard_match("git*", "git status"))


class TestPermissionConfig(unittest.TestCase):
    def test_defaults(self) -> None:
        config = PermissionConfig()
        self.assertEqual(config.tools, DEFAULT_TOOL_PERMISSIONS)
        self.assertEqual(config.tools["bash"], Permission.ASK)
        self.assertEqual(config.tools["read_file"], Permission.ALLOW)

    def test_from_mapping_merges_over_defaults_and_skips_invalid(self) -> None:
        config = PermissionConfig.from_mapping(
            {
                "tools": {"write_file": "deny", "edit": "sometimes"},
                "bash_commands": {"rm *": "DENY", "git *": "allow"},
            }
        )
        self.assertEqual(config.tools["write_file"], Permission.DENY)
        self.assertEqual(config.tools["edit"], Permission.ALLOW)
        self.assertEqual(list(config.bash_commands), ["rm *", "git *"])
        self.assertEqual(config.bash_commands["rm *"], Permission.DENY)

    def test_non_object_sections_are_ignored(self) -> None:
        config = PermissionConfig.from_mapping({"tools": ["bash"], "bash_commands": None})
        self.assertEqual(config.tools, DEFAULT_TOOL_PERMISSIONS)
        self.assertEqual(config.bash_commands, {})


class TestPermissionManager(unittest.TestCase):
    def test_tool_permission_from_config(self) -> None:
        manager = PermissionManager()
        self.assertEqual(manager.check("read_file", "{}"), Permission.ALLOW)
        self.assertEqual(manager.check("bash", _bash("ls")), Permission.ASK)

    def test_unknown_tool_defaults_to_ask(self) -> None:
        self.assertEqual(PermissionManager().check("mystery", "{}"), Permission.ASK)

    def test_first_matching_bash_pattern_wins(self) -> None:
        config = PermissionConfig(
            bash_commands={
                "git push *": Permission.DENY,
                "git *": Permission.ALLOW,
            }
        )
        manager = PermissionManager(config)
        self.assertEqual(manager.check("bash", _bash("git push origin main")), Permission.DENY)
        self.assertEqual(manager.check("bash", _bash("git status")), Permission.ALLOW)
        self.assertEqual(manager.check("bash", _bash("make")), Permission.ASK)

    def test_bash_patterns_accept_mapping_arguments(self) -> None:
        manager = PermissionManager(PermissionConfig(bash_commands={"ls": Permission.ALLOW}))
        self.assertEqual(manager.check("bash", {"command": "ls"}), Permission.ALLOW)

    def test_unparseable_bash_arguments_fall_back_to_tool_permission(self) -> None:
        manager = PermissionManager(PermissionConfig(bash_commands={"ls": Permission.ALLOW}))
        self.assertEqual(manager.check("bash", "{broken"), Permission.ASK)
        self.assertEqual(manager.check("bash", json.dumps(["ls"])), Permission.ASK)

    def test_bash_patterns_do_not_apply_to_other_tools(self) -> None:
        manager = PermissionManager(PermissionConfig(bash_commands={"ls": Permission.DENY}))
        self.assertEqual(manager.check("read_file", _bash("ls")), Permission.ALLOW)

    def test_session_override_beats_everything(self) -> None:
        config = PermissionConfig(bash_commands={"rm *": Permission.DENY})
        manager = PermissionManager(config)
        manager.set_session_override("bash", Permission.ALLOW)

        self.assertEqual(manager.check("bash", _bash("rm -rf build")), Permission.ALLOW)
        self.assertEqual(manager.session_overrides(), {"bash": Permission.ALLOW})

        manager.clear_session_overrides()
        self.assertEqual(manager.check("bash", _bash("rm -rf build")), Permission.DENY)


if __name__ == "__main__":
    unittest.main(verbosity=2)
