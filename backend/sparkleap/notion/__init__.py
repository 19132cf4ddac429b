# backend/sparkleap/notion/__init__.py

"""
Notion 連携用モジュール群。

主な責務:
- Notion API からデータベースをページングで読み取る
- PropertyMapping に従ってページを正規タスクレコードに変換する
- 同期対象データベースの選択・マッピング・チェックポイントを管理する
"""
