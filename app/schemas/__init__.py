from .common import UserSummary, BookSummary
from .swap_request import SwapRequestCreate, SwapStatusUpdate, SwapOfferSummary, SwapRequestResponse
from .chat_message import SendMessageRequest, ChatMessageResponse, UnreadCountResponse, MarkReadResponse
from .inbox import LatestMessagePreview, InboxItemResponse, InboxResponse
