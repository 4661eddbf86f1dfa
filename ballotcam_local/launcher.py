from __future__ import annotations

import uvicorn

from ballotcam.config import get_camera_config, get_local_server_config
from ballotcam.logging.logger import get_logger


def main() -> None:
    logger = get_logger()
    server = get_local_server_config()
    camera = get_camera_config()
    logger.info("Starting BallotCam Local on %s:%s (camera backend: %s)", server.host, server.port, camera.backend)
    uvicorn.run(
        "ballotcam_local.main:create_app",
        factory=True,
        host=server.host,
        port=server.port,
        log_level=server.log_level.lower(),
        reload=False,
    )


if __name__ == "__main__":
    main()
