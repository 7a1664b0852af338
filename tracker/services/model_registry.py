from tracker.config import Settings


class ModelRegistry:
    """Models a prompt may be sent to, as configured in settings.yaml."""

    def __init__(self, settings: Settings):
        self._models: dict[str, dict] = {}
        for model_cfg in settings.models_config:
            self._models[model_cfg["id"]] = model_cfg
        self.default_model = settings.default_model

    def __contains__(self, model_id: str) -> bool:
        return model_id in self._models

    def display_name(self, model_id: str) -> str:
        model = self._models.get(model_id)
        return model.get("name", model_id) if model else model_id

    def list_models(self) -> list[dict]:
        return list(self._models.values())
