from m2c.MODELS.runtime_settings import RuntimeSettings


def test_defaults():
    settings = RuntimeSettings.from_env({})
    assert settings.compose_command == ["docker-compose"]
    assert settings.descriptor_file_name == "docker-compose.yml"
    assert settings.network_key == "m2c"
    assert settings.command_timeout is None
    assert settings.inspect_mode == "json"


def test_from_env():
    settings = RuntimeSettings.from_env({
        "M2C_COMPOSE_COMMAND": "docker compose",
        "M2C_DOCKER_COMMAND": "podman",
        "M2C_NETWORK_KEY": "envnet",
        "M2C_COMMAND_TIMEOUT": "30",
        "M2C_INSPECT_MODE": "delimited",
        "M2C_SHELL_COMMAND": "/bin/sh -l",
    })
    assert settings.compose_command == ["docker", "compose"]
    assert settings.docker_command == "podman"
    assert settings.network_key == "envnet"
    assert settings.command_timeout == 30.0
    assert settings.inspect_mode == "delimited"
    assert settings.shell_command == ["/bin/sh", "-l"]
