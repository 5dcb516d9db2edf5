"""Tests for model selection and capability discovery."""

import pytest
from llamachat.catalog import DEFAULT_CONTEXT_WINDOW, ModelCatalog
from llamachat.errors import BackendError, BackendUnreachable, ModelNotFound


@pytest.fixture
def catalog(scripted_llm) -> ModelCatalog:
    return ModelCatalog.connect(scripted_llm, "llama3:latest")


class TestConnect:
    def test_selects_initial_model(self, catalog):
        assert catalog.current_model == "llama3:latest"

    def test_missing_initial_model(self, scripted_llm):
        with pytest.raises(ModelNotFound, match="model not found: mistral"):
            ModelCatalog.connect(scripted_llm, "mistral")

    def test_backend_failure_propagates(self, scripted_llm):
        def unreachable():
            raise BackendUnreachable("down")

        scripted_llm.list_models = unreachable
        with pytest.raises(BackendUnreachable):
            ModelCatalog.connect(scripted_llm, "llama3:latest")


class TestListing:
    def test_list_models_returns_set(self, catalog):
        assert catalog.list_models() == {"llama3:latest", "tinyllama:latest"}

    def test_model_names_sorted(self, scripted_llm):
        scripted_llm.models = ["zephyr", "alpaca", "zephyr"]
        catalog = ModelCatalog(scripted_llm)
        catalog.list_models()
        assert catalog.model_names() == ["alpaca", "zephyr"]

    def test_empty_before_listing(self, scripted_llm):
        catalog = ModelCatalog(scripted_llm)
        assert catalog.model_names() == []
        assert catalog.current_model == ""
        assert catalog.max_model_name_length() == 0

    def test_max_model_name_length(self, catalog):
        assert catalog.max_model_name_length() == len("tinyllama:latest")


class TestSelectModel:
    def test_switch_model(self, catalog):
        catalog.select_model("tinyllama:latest")
        assert catalog.current_model == "tinyllama:latest"

    @pytest.mark.parametrize("name", ["", "mistral", "LLAMA3:LATEST", "llama3"])
    def test_unknown_model_keeps_current(self, catalog, name):
        with pytest.raises(ModelNotFound):
            catalog.select_model(name)
        assert catalog.current_model == "llama3:latest"

    def test_validation_uses_last_listing(self, catalog, scripted_llm):
        scripted_llm.models.append("mistral:latest")
        with pytest.raises(ModelNotFound):
            catalog.select_model("mistral:latest")

        catalog.list_models()
        catalog.select_model("mistral:latest")
        assert catalog.current_model == "mistral:latest"


class TestContextWindow:
    def test_reads_architecture_context_length(self, catalog, scripted_llm):
        scripted_llm.model_info = {
            "general.architecture": "llama",
            "llama.context_length": 8192,
        }
        assert catalog.context_window_size() == 8192

    def test_other_architectures(self, catalog, scripted_llm):
        scripted_llm.model_info = {"general.architecture": "qwen2", "qwen2.context_length": 32768}
        assert catalog.context_window_size("tinyllama:latest") == 32768

    def test_default_when_field_missing(self, catalog, scripted_llm):
        scripted_llm.model_info = {"general.architecture": "llama"}
        assert catalog.context_window_size() == DEFAULT_CONTEXT_WINDOW == 4096

    def test_request_failure_is_not_defaulted(self, catalog, scripted_llm):
        scripted_llm.model_info = BackendError("boom", status_code=500)
        with pytest.raises(BackendError):
            catalog.context_window_size()

    def test_unknown_model(self, catalog):
        with pytest.raises(ModelNotFound):
            catalog.context_window_size("mistral")

    def test_result_is_cached(self, catalog, scripted_llm):
        scripted_llm.model_info = {"llama.context_length": 2048}
        catalog.context_window_size()
        catalog.context_window_size()
        assert scripted_llm.show_calls == ["llama3:latest"]
