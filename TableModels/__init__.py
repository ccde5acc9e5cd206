from .base import Base, metadata
from .client import Client
from .stock import Stock
from .trade import Trade
from .fifo_allocation import FifoAllocation
from .brokerage_calculation import BrokerageCalculation
from .brokerage_detail import BrokerageDetail
from .holiday import Holiday
from .trading_period import TradingPeriod
