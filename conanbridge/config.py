import toml
import os
from .cli_logger import logger

CONFIG_FILE = "conanbridge.toml"

DEFAULT_CONAN_COMMAND = "conan"
DEFAULT_MINIMUM_VERSION = "2.0.5"
DEFAULT_MULTI_CONFIG_BUILD_TYPES = ["Release", "Debug"]


def load_config(path="."):
    config_path = os.path.join(path, CONFIG_FILE)
    if os.path.exists(config_path):
        logger.debug(f"Loading configuration from {config_path}")
        try:
            with open(config_path, "r") as f:
                return toml.load(f)
        except toml.TomlDecodeError as e:
            logger.error(f"Error decoding TOML file at {config_path}: {e}")
            logger.info("Please check the file's format for syntax errors.")
        except IOError as e:
            logger.error(f"Error reading configuration file at {config_path}: {e}")
            logger.info("Please check file permissions.")
    return {}

def save_config(config, path="."):
    config_path = os.path.join(path, CONFIG_FILE)
    logger.info(f"Saving configuration to {config_path}")
    try:
        with open(config_path, "w") as f:
            toml.dump(config, f)
        return True
    except IOError as e:
        logger.error(f"Error saving configuration to {config_path}: {e}")
        logger.info("Please check file permissions and ensure the directory is writable.")
        return False


def get_conan_command(config):
    """The conan executable, the environment taking precedence over the config file."""
    return os.environ.get("CONANBRIDGE_CONAN") or config.get("conan", {}).get("command", DEFAULT_CONAN_COMMAND)

def get_minimum_version(config):
    return str(config.get("conan", {}).get("minimum_version", DEFAULT_MINIMUM_VERSION))

def get_build_policies(config):
    build = config.get("conan", {}).get("build", ["missing"])
    if isinstance(build, str):
        build = [build]
    return list(build)

def get_install_args(config):
    return [str(arg) for arg in config.get("conan", {}).get("install_args", [])]

def get_generators(config):
    return list(config.get("conan", {}).get("generators", []))

def get_profile_settings(config):
    return {str(k): str(v) for k, v in config.get("profile", {}).get("settings", {}).items()}

def get_profile_conf(config):
    return {str(k): str(v) for k, v in config.get("profile", {}).get("conf", {}).items()}

def get_host_profile(config):
    return config.get("profile", {}).get("host", "default")

def get_build_profile(config):
    return config.get("profile", {}).get("build_profile", "default")

def get_multi_config_build_types(config):
    return list(config.get("multi_config", {}).get("build_types", DEFAULT_MULTI_CONFIG_BUILD_TYPES))
