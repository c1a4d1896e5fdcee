"""常量定义：集中维护状态码、占位文本与标签相关的固定取值。"""

HTTP_STATUS_BAD_REQUEST = 400
HTTP_STATUS_FORBIDDEN = 403
HTTP_STATUS_NOT_FOUND = 404

# 顶级（虚拟根）节点的固定形态，数据库中不存在对应行
ROOT_NODE_ID = 0
ROOT_PARENT_ID = -1
ROOT_LEVEL = -1

# 无 READ 权限时返回的遮蔽文本
MASKED_TEXT = "???"

# 位掩码宽度：每个操作占用 2 位，最高可用到第 30 位（保持 32 位有符号整数安全）
PERMISSION_BITS_PER_OPERATION = 2
PERMISSION_MAX_BIT = 30

API_PATH_DELIMITER = "/"

BARCODE_C39_PREFIX = "$L"
BARCODE_C39_WIDTH = 5
BARCODE_QR_TEMPLATE = "Part-DB; Part: {id}"
