# backend/sparkleap/kpi/__init__.py

"""
週次実行 KPI の集計モジュール群。

- schemas: WeeklyExecutionSnapshot
- service: TaskRecord から週次 KPI を算出し、スナップショットとして保存する
- router: /kpi/weekly エンドポイント
"""
