"""
アプリケーション固有の例外定義モジュール。

リモートストア操作、CSV取り込み、設定読み込みなどで発生する例外を
分類して扱うために、基底例外および派生例外を定義する。
"""


class CatalogError(Exception):
    """曲カタログ管理システム全体の基底例外。"""


class StoreUnavailable(CatalogError):
    """リモートストアの初期化が完了していない、または初期化に失敗した場合の例外。"""


class RemoteError(CatalogError):
    """リモートストアとの通信やバックエンド処理に失敗した場合の例外。"""


class NotFound(CatalogError):
    """更新・削除対象のレコードが存在しない場合の例外。"""


class ParseError(CatalogError):
    """取り込みデータ全体が不正で、取り込みを中止すべき場合の例外。"""


class ConfigError(CatalogError):
    """設定ファイルの内容が不足・不正な場合の例外。"""
