"""压缩结果模型。

定义批量压缩中每个文件的成功/失败结果以及批量汇总。
"""

from typing import Any, Literal

from humanize import naturalsize
from pydantic import BaseModel, Field, computed_field, model_validator


class BaseResult(BaseModel):
    """结果基类，包含通用字段和方法"""

    original_name: str = Field(description="客户端提供的原始文件名")

    @staticmethod
    def format_size(size_bytes: int) -> str:
        """格式化文件大小为人类可读格式"""
        return naturalsize(size_bytes, binary=True)


class BatchItemSuccess(BaseResult):
    """单个文件压缩成功"""

    success: Literal[True] = True
    output_name: str = Field(description="工作区中的输出文件名")
    original_bytes: int = Field(ge=0, description="原始大小（字节）")
    output_bytes: int = Field(ge=0, description="输出大小（字节）")
    format_used: str = Field(description="实际输出的格式扩展名")
    was_resized: bool = Field(False, description="是否因尺寸限制而缩小")

    @model_validator(mode="after")
    def check_not_larger(self) -> "BatchItemSuccess":
        if self.output_bytes > self.original_bytes:
            raise ValueError("输出文件不能大于原始文件")
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def saved_bytes(self) -> int:
        """节省的字节数，永不为负"""
        return max(0, self.original_bytes - self.output_bytes)

    def get_compression_ratio(self) -> float:
        """压缩比例（百分比）"""
        if self.original_bytes == 0:
            return 0.0
        return (self.saved_bytes / self.original_bytes) * 100

    def get_saved_human(self) -> str:
        """人类可读的节省大小"""
        if self.saved_bytes <= 0:
            return "无改善"
        return self.format_size(self.saved_bytes)

    def get_summary(self) -> str:
        return (
            f"{self.format_size(self.original_bytes)} → "
            f"{self.format_size(self.output_bytes)} "
            f"({self.get_compression_ratio():.1f}% 压缩)"
        )


class BatchItemFailure(BaseResult):
    """单个文件处理失败，没有写入或登记任何文件"""

    success: Literal[False] = False
    category: str = Field(description="稳定的失败分类")
    friendly: str = Field(description="面向用户的提示")
    technical: str = Field(description="技术细节，用于排查")


class BatchResult(BaseModel):
    """批量处理结果"""

    job_id: str = Field(description="所属 job")
    successes: list[BatchItemSuccess] = Field(default_factory=list)
    failures: list[BatchItemFailure] = Field(default_factory=list)

    def get_total_count(self) -> int:
        return len(self.successes) + len(self.failures)

    def get_success_count(self) -> int:
        return len(self.successes)

    def get_failure_count(self) -> int:
        return len(self.failures)

    def get_success_rate(self) -> float:
        """获取成功率（百分比）"""
        total = self.get_total_count()
        if total == 0:
            return 0.0
        return (self.get_success_count() / total) * 100

    def get_total_size_saved(self) -> int:
        return sum(r.saved_bytes for r in self.successes)

    def get_summary(self) -> str:
        """批量处理摘要"""
        return (
            f"处理 {self.get_success_count()}/{self.get_total_count()} 个文件 "
            f"(成功率 {self.get_success_rate():.1f}%), "
            f"总节省 {BaseResult.format_size(self.get_total_size_saved())}"
        )


# 批量提交的响应体（HTTP 与 MCP 共用）
CompressionPayload = dict[str, Any]
