"""
@description 配置管理模块
@responsibility 加载和验证 config.yaml，支持环境变量覆盖
"""

import os
import sys
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator


class SchedulerConfig(BaseModel):
    """调度器配置"""

    max_concurrent: int = Field(default=3, description="最大并发下载数")
    tick_interval: float = Field(default=1.0, description="调度轮询间隔（秒）")

    @field_validator("max_concurrent")
    @classmethod
    def _check_max_concurrent(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_concurrent 必须大于等于 1")
        return value

    @field_validator("tick_interval")
    @classmethod
    def _check_tick_interval(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("tick_interval 必须大于 0")
        return value


class StorageConfig(BaseModel):
    """文件存储配置"""

    downloads_dir: str = Field(default="./downloads", description="下载文件存放目录")


class RetentionConfig(BaseModel):
    """过期清理配置"""

    window_hours: float = Field(default=24, description="文件保留时长（小时）")
    sweep_interval: float = Field(default=3600, description="清理任务执行间隔（秒）")

    @field_validator("window_hours", "sweep_interval")
    @classmethod
    def _check_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("保留时长和清理间隔必须大于 0")
        return value

    @property
    def window_seconds(self) -> float:
        return self.window_hours * 3600


class EngineConfig(BaseModel):
    """传输引擎（libtorrent）配置"""

    listen_interfaces: str = Field(
        default="0.0.0.0:0", description="监听地址，端口为 0 时由系统分配"
    )
    enable_dht: bool = Field(default=False, description="是否启用 DHT")
    enable_lsd: bool = Field(default=False, description="是否启用本地节点发现")
    poll_interval: float = Field(default=0.5, description="引擎状态轮询间隔（秒）")


class Config(BaseModel):
    """全局配置"""

    scheduler: SchedulerConfig = Field(
        default_factory=SchedulerConfig, description="调度器配置"
    )
    storage: StorageConfig = Field(
        default_factory=StorageConfig, description="存储配置"
    )
    retention: RetentionConfig = Field(
        default_factory=RetentionConfig, description="清理配置"
    )
    engine: EngineConfig = Field(default_factory=EngineConfig, description="引擎配置")


def get_config_path() -> Path:
    """获取配置文件路径"""
    # 优先使用 CONFIG_PATH 环境变量，否则使用项目根目录的 config.yaml
    if config_path_str := os.environ.get("CONFIG_PATH"):
        return Path(config_path_str)
    return Path(__file__).parent.parent.parent / "config.yaml"


def load_config() -> Config:
    """加载配置文件并应用环境变量覆盖"""
    config_path = get_config_path()

    # 配置文件不存在时生成模板并退出
    if not config_path.exists():
        _generate_config_template(config_path)
        print(f"错误: 配置文件不存在: {config_path}")
        print(f"已生成配置模板: {config_path.parent / 'config.example.yaml'}")
        sys.exit(1)

    with open(config_path) as f:
        config_data = yaml.safe_load(f) or {}

    config = Config(**config_data)

    # 应用环境变量覆盖
    if downloads_dir := os.environ.get("DOWNLOADS_DIR"):
        config.storage.downloads_dir = downloads_dir
    if max_concurrent := os.environ.get("MAX_CONCURRENT"):
        config.scheduler = SchedulerConfig(
            max_concurrent=int(max_concurrent),
            tick_interval=config.scheduler.tick_interval,
        )

    return config


def _generate_config_template(config_path: Path) -> None:
    """生成配置模板文件"""
    template_path = config_path.parent / "config.example.yaml"

    if template_path.exists():
        return

    template_content = """# 调度器配置
scheduler:
  # 同时进行的下载任务上限，超出的任务排队等待
  max_concurrent: 3
  # 调度器轮询间隔（秒）
  tick_interval: 1.0

# 文件存储配置
storage:
  # 下载完成的文件统一存放在此目录（扁平结构，以文件名为键）
  downloads_dir: "./downloads"

# 过期清理配置
retention:
  # 文件保留时长（小时），超过后文件和任务记录都会被清理
  window_hours: 24
  # 清理任务执行间隔（秒）
  sweep_interval: 3600

# 传输引擎配置（libtorrent）
engine:
  # 监听地址，端口为 0 时由系统自动分配
  listen_interfaces: "0.0.0.0:0"
  # 受限网络环境下通常需要关闭 DHT 和本地发现，仅保留 tracker
  enable_dht: false
  enable_lsd: false
  # 引擎状态轮询间隔（秒）
  poll_interval: 0.5
"""

    with open(template_path, "w") as f:
        f.write(template_content)
