"""
支付仓储接口 - 定义支付数据访问的抽象接口
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from .entity import Payment, PaymentMethod, PaymentStatus

MAX_PAGE_SIZE = 100


@dataclass
class PaymentFilter:
    """列表查询条件；page/page_size 至少为 1，page_size 上限 100"""

    status: Optional[PaymentStatus] = None
    customer_id: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    page: int = 1
    page_size: int = 10

    def __post_init__(self):
        self.page = max(1, int(self.page or 1))
        self.page_size = min(max(1, int(self.page_size or 1)), MAX_PAGE_SIZE)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


class PaymentRepository(ABC):
    """支付仓储抽象接口 - 只定义能做什么，不管怎么做"""

    @abstractmethod
    async def create(self, payment: Payment) -> Payment:
        """创建支付记录；transaction_id 重复时抛出 PaymentAlreadyExistsException"""

    @abstractmethod
    async def get_by_transaction_id(self, transaction_id: str) -> Optional[Payment]:
        """根据交易ID获取支付"""

    @abstractmethod
    async def get_for_update(self, transaction_id: str) -> Optional[Payment]:
        """读取并锁定支付记录，用于读-改-写路径，锁随事务释放"""

    @abstractmethod
    async def update(self, payment: Payment) -> Payment:
        """更新支付记录（刷新 updated_at）"""

    @abstractmethod
    async def list_by_filter(self, payment_filter: PaymentFilter) -> Tuple[List[Payment], int]:
        """按条件分页查询，按创建时间倒序，返回 (当前页, 总数)"""

    @abstractmethod
    async def list_stale(
        self,
        statuses: List[PaymentStatus],
        older_than: datetime,
        limit: int = 100,
    ) -> List[Payment]:
        """查询在指定状态下停留超过截止时间的支付（对账使用）"""
