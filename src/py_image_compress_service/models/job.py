"""Job 模型。

一次上传批次对应一个 job：私有工作区目录、持有者令牌和固定的过期时间。
"""

import hmac

from pydantic import BaseModel, Field, SecretStr


class Job(BaseModel):
    """一次批量压缩任务

    token 以 SecretStr 保存，repr 和日志中不会出现明文。
    files 与 leases 只能在 WorkspaceStore 的锁内修改。
    """

    id: str = Field(description="全局唯一 ID，同时作为工作区目录名")
    token: SecretStr = Field(description="访问令牌")
    created_at: float = Field(description="创建时间（epoch 秒）")
    expires_at: float = Field(description="过期时间（epoch 秒）")
    files: set[str] = Field(default_factory=set, description="该 job 拥有的输出文件名")

    # 已选定但尚未写入完成的文件名
    reserved: set[str] = Field(default_factory=set, exclude=True)
    # 正在进行的下载/打包数量
    leases: int = Field(0, ge=0, exclude=True)

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def token_matches(self, candidate: str | None) -> bool:
        """常量时间比较令牌"""
        if not candidate:
            return False
        return hmac.compare_digest(
            self.token.get_secret_value().encode("utf-8"),
            candidate.encode("utf-8"),
        )

    def snapshot_files(self) -> list[str]:
        """当前文件集合的有序快照"""
        return sorted(self.files)
