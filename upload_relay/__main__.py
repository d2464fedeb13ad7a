import uvicorn

from upload_relay.config import get_config


def main() -> None:
    config = get_config()
    uvicorn.run("upload_relay.main:app", host=config.host, port=config.port)


if __name__ == "__main__":
    main()
