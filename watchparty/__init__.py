"""
watchparty
~~~~~~~~~~

同步观影房间协调服务。
"""
