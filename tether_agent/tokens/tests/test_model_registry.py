import unittest

from tether_agent.tokens.model_registry import DEFAULT_CONTEXT_WINDOW, ModelRegistry


class TestModelRegistry(unittest.TestCase):
    def test_known_windows(self) -> None:
        registry = ModelRegistry()
        self.assertEqual(registry.context_window("claude-sonnet-4-5"), 200_000)
        self.assertEqual(registry.context_window("gpt-4.1"), 1_047_576)
        self.assertEqual(registry.context_window("llama3"), 8_192)

    def test_unknown_model_uses_default(self) -> None:
        self.assertEqual(ModelRegistry().context_window("made-up"), DEFAULT_CONTEXT_WINDOW)
        self.assertEqual(DEFAULT_CONTEXT_WINDOW, 128_000)

    def test_overrides_take_precedence(self) -> None:
        registry = ModelRegistry({"llama3": 65_536, "local-model": 4_096})
        self.assertEqual(registry.context_window("llama3"), 65_536)
        self.assertEqual(registry.context_window("local-model"), 4_096)

    def test_known_models_by_provider(self) -> None:
        registry = ModelRegistry({"local-model": 4_096})
        ollama = registry.known_models("ollama")
        self.assertTrue(ollama)
        self.assertTrue(all(m.provider == "ollama" for m in ollama))

        everything = registry.known_models()
        custom = [m for m in everything if m.provider == "custom"]
        self.assertEqual([(m.name, m.context_window) for m in custom], [("local-model", 4_096)])


if __name__ == "__main__":
    unittest.main(verbosity=2)
