# backend/sparkleap/usage/__init__.py

"""
API 利用回数の制限モジュール。

- config: 上限値・管理者キーの設定
- limiter: 日次 / 時間単位のカウンタ（アプリごとに 1 インスタンス）
- router: /usage-stats エンドポイント
"""
