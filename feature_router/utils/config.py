"""配置管理模块"""

import logging
import os
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def load_config(config_path: Union[str, Path]) -> dict[str, Any]:
    """
    加载配置文件

    Args:
        config_path: YAML 配置文件路径

    Returns:
        完成环境变量替换的配置字典
    """
    # 加载环境变量
    load_dotenv()

    # 读取配置文件
    try:
        with open(config_path, encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise FileNotFoundError(f"配置文件未找到: {config_path}") from None
    except yaml.YAMLError as e:
        raise ValueError(f"配置文件格式错误: {e}") from e

    if not isinstance(config, dict):
        raise ValueError(f"配置文件顶层必须是映射: {config_path}")

    # 环境变量替换
    return _replace_env_vars(config)


def _replace_env_vars(obj: Any) -> Any:
    """
    递归替换配置中的环境变量占位符 ${VAR_NAME} / ${VAR_NAME:default}
    """
    if isinstance(obj, dict):
        return {key: _replace_env_vars(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [_replace_env_vars(item) for item in obj]
    elif isinstance(obj, str) and obj.startswith("${") and obj.endswith("}"):
        env_var = obj[2:-1]
        default_value = None

        if ":" in env_var:
            env_var, default_value = env_var.split(":", 1)

        value = os.getenv(env_var, default_value)
        if value is None:
            logger.warning(f"CONFIG: Environment variable {env_var} is not set, keeping placeholder")
            return obj
        return value
    else:
        return obj


def get_config_value(config: dict[str, Any], key_path: str, default: Any = None) -> Any:
    """
    获取嵌套配置值

    Args:
        config: 配置字典
        key_path: 配置路径，如 'settings.logging.level'
        default: 默认值
    """
    value: Any = config
    for key in key_path.split("."):
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default
    return value


def mask_credential(secret: Optional[str]) -> Optional[str]:
    """凭据掩码显示：只保留前 4 位和后 4 位"""
    if not secret:
        return None
    if len(secret) <= 8:
        return "*" * len(secret)
    return f"{secret[:4]}{'*' * 4}{secret[-4:]}"
