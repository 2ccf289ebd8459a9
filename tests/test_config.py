from nodedev.config import DEFAULT_LOG_LEVEL, Settings


def test_defaults():
    settings = Settings.from_env({})

    assert settings.library_path is None
    assert settings.default_uri is None
    assert settings.log_level == DEFAULT_LOG_LEVEL


def test_from_env():
    settings = Settings.from_env(
        {
            "NODEDEV_LIBVIRT_PATH": "/opt/libvirt/lib/libvirt.so.0",
            "LIBVIRT_DEFAULT_URI": "qemu:///system",
            "NODEDEV_LOG_LEVEL": "debug",
        }
    )

    assert settings.library_path == "/opt/libvirt/lib/libvirt.so.0"
    assert settings.default_uri == "qemu:///system"
    assert settings.log_level == "DEBUG"


def test_empty_values_ignored():
    settings = Settings.from_env({"LIBVIRT_DEFAULT_URI": "", "NODEDEV_LOG_LEVEL": ""})

    assert settings.default_uri is None
    assert settings.log_level == DEFAULT_LOG_LEVEL
