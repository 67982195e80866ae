"""
基准测试系统配置
"""
from typing import Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..data_models.records import BENCHMARK_SCALES


class DatabaseSettings(BaseSettings):
    """数据库配置"""
    # PostgreSQL
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "social_network"
    postgres_user: str = "postgres"
    postgres_password: str = "postgres"
    # 显式指定的SQLAlchemy连接串，优先于上面的分项配置
    sqlalchemy_url: Optional[str] = None

    # MongoDB
    mongodb_host: str = "localhost"
    mongodb_port: int = 27017
    mongodb_db: str = "social_network"
    mongodb_user: Optional[str] = None
    mongodb_password: Optional[str] = None
    mongodb_url_override: Optional[str] = None

    # 服务器选择超时
    connect_timeout_ms: int = 5000

    model_config = SettingsConfigDict(env_prefix="DBBENCH_DB_", extra="ignore")

    @property
    def postgres_url(self) -> str:
        if self.sqlalchemy_url:
            return self.sqlalchemy_url
        return f"postgresql+psycopg2://{self.postgres_user}:{self.postgres_password}@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"

    @property
    def mongodb_url(self) -> str:
        if self.mongodb_url_override:
            return self.mongodb_url_override
        if self.mongodb_user:
            return f"mongodb://{self.mongodb_user}:{self.mongodb_password}@{self.mongodb_host}:{self.mongodb_port}"
        return f"mongodb://{self.mongodb_host}:{self.mongodb_port}"


class BenchmarkSettings(BaseSettings):
    """基准运行配置"""
    scales: List[int] = Field(default_factory=lambda: list(BENCHMARK_SCALES))

    # 聚合阶段使用的数据规模
    aggregation_scale: int = 1000

    # 每个变体的点赞密度（点赞候选数 = 规模 × 密度）
    like_density: Dict[str, float] = Field(default_factory=lambda: {
        "basic": 0.5,
        "relational": 5.0,
        "indexed": 5.0,
    })

    # 排行类聚合查询返回条数
    top_n: int = 10

    # 结果工件
    output_path: str = "test-results.json"

    model_config = SettingsConfigDict(env_prefix="DBBENCH_", extra="ignore")

    @field_validator("scales", "aggregation_scale")
    @classmethod
    def check_scale(cls, value):
        values = value if isinstance(value, list) else [value]
        for scale in values:
            if scale not in BENCHMARK_SCALES:
                raise ValueError(f"scale must be one of {BENCHMARK_SCALES}, got {scale}")
        # 重复的规模只保留第一次出现
        return list(dict.fromkeys(value)) if isinstance(value, list) else value


class Settings(BaseSettings):
    """主配置类"""
    app_name: str = "dbbench"
    app_version: str = "1.0.0"

    # 组件配置
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    benchmark: BenchmarkSettings = Field(default_factory=BenchmarkSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="DBBENCH_",
        env_nested_delimiter="__",
        extra="ignore",
    )


# 全局配置实例
settings = Settings()
