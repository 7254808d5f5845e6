# insight_bff/services/__init__.py
"""请求期编排器：feed 列表、单集群详情、批量翻译、市场配置与分类。"""
