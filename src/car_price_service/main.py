import logging

import uvicorn

from .api import create_app
from .config import config_path_from_env, load_infer_config


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# config is read once at import; dataset and artifacts are loaded in the app lifespan
infer_config = load_infer_config(config_path_from_env())
configure_logging(infer_config.service.log_level)

app = create_app(config=infer_config)


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000, log_level=infer_config.service.log_level.lower())
