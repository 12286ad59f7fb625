import argparse
import json
import logging
import os
import sys
from datetime import date, datetime, timezone

import yaml

from src.catalog import SongCatalog
from src.config import Settings, load_settings
from src.csv_export import export_filename
from src.csv_import import read_csv_file
from src.discord_notify import build_import_message, build_migration_message, send_discord
from src.errors import CatalogError
from src.filters import FilterQuery
from src.firestore_store import FirestoreSongStore
from src.legacy_store import LegacySongStore
from src.migration import MigrationStatus
from src.models import Song, SongState, SongType, state_or_default, type_or_default

READY_TIMEOUT = 30


def now_iso() -> str:
    """
    現在のUTC時刻をISO 8601形式の文字列で取得する。

    Returns:
        str: ISO 8601形式でフォーマットされた現在のUTC時刻文字列。
    """
    return datetime.now(timezone.utc).isoformat()


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="曲カタログ管理 (Firestore)")
    parser.add_argument(
        "--settings",
        default=os.environ.get("SETTINGS_PATH", "settings.yaml"),
        help="settings.yaml のパス",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_list = sub.add_parser("list", help="曲一覧を表示する")
    p_list.add_argument("--search", default="")
    p_list.add_argument("--type", action="append", default=[], dest="types")
    p_list.add_argument("--state", action="append", default=[], dest="states")

    p_add = sub.add_parser("add", help="曲を追加する")
    p_add.add_argument("--artist", required=True)
    p_add.add_argument("--song", required=True)
    p_add.add_argument("--state", default=SongState.PENDING_APPROVAL.value)
    p_add.add_argument("--type", default=SongType.SLOW.value, dest="song_type")
    p_add.add_argument("--link", default="")
    p_add.add_argument("--comments", default="")

    p_update = sub.add_parser("update", help="曲を更新する")
    p_update.add_argument("id")
    p_update.add_argument("--artist")
    p_update.add_argument("--song")
    p_update.add_argument("--state")
    p_update.add_argument("--type", dest="song_type")
    p_update.add_argument("--link")

    p_comment = sub.add_parser("comment", help="コメントを更新する")
    p_comment.add_argument("id")
    p_comment.add_argument("text")

    p_delete = sub.add_parser("delete", help="曲を削除する")
    p_delete.add_argument("id")

    p_import = sub.add_parser("import", help="CSVを取り込む")
    p_import.add_argument("csv_path")
    p_import.add_argument("--yes", action="store_true", help="確認せずに取り込む")

    p_export = sub.add_parser("export", help="絞り込み後の曲をCSVへ書き出す")
    p_export.add_argument("--search", default="")
    p_export.add_argument("--type", action="append", default=[], dest="types")
    p_export.add_argument("--state", action="append", default=[], dest="states")
    p_export.add_argument("--out")

    sub.add_parser("stats", help="件数集計を表示する")

    p_backup = sub.add_parser("backup", help="全曲をJSONで書き出す")
    p_backup.add_argument("--out", default="songs_backup.json")

    return parser


def _query_from_args(args) -> FilterQuery:
    return FilterQuery.build(
        search_text=args.search,
        types=[type_or_default(t) for t in args.types],
        states=[state_or_default(s) for s in args.states],
    )


def _print_songs(catalog: SongCatalog) -> None:
    for song in catalog.filtered_songs:
        print(
            f"{song.id}\t{song.artist_name}\t{song.song_name}\t"
            f"{song.state.value}\t{song.song_type.value}\t{song.comments}"
        )
    filtered, total = catalog.cache.result_counts()
    if filtered == total:
        print(f"{total} canciones")
    else:
        print(f"{filtered} de {total} canciones")


def _confirm_import(preview) -> bool:
    print(
        f"Se encontraron {len(preview.parsed.songs)} canciones en el CSV.\n"
        f"{len(preview.new_songs)} son nuevas y se agregarán.\n"
        f"{preview.duplicates} ya existen y se omitirán."
    )
    answer = input("¿Deseas continuar con la importación? [y/N] ").strip().lower()
    return answer in ("y", "s", "yes", "si", "sí")


def run_command(args, settings: Settings, catalog: SongCatalog) -> int:
    webhook = settings.discord_webhook_url
    catalog.load()

    result = catalog.migration_result
    if webhook and result and result.status is not MigrationStatus.NOTHING_TO_MIGRATE:
        send_discord(webhook, build_migration_message(result))

    if args.command == "list":
        catalog.set_filters(_query_from_args(args))
        _print_songs(catalog)

    elif args.command == "add":
        song = catalog.add_song(
            Song(
                artist_name=args.artist,
                song_name=args.song,
                state=state_or_default(args.state),
                song_type=type_or_default(args.song_type),
                youtube_link=args.link,
                comments=args.comments,
            )
        )
        print(f"added: {song.id}")

    elif args.command == "update":
        fields = {
            key: value
            for key, value in {
                "artistName": args.artist,
                "songName": args.song,
                "state": args.state,
                "type": args.song_type,
                "youtubeLink": args.link,
            }.items()
            if value is not None
        }
        if not fields:
            print("更新する項目を指定してください", file=sys.stderr)
            return 2
        catalog.update_song(args.id, fields)
        print(f"updated: {args.id}")

    elif args.command == "comment":
        catalog.update_comment(args.id, args.text)
        print(f"updated: {args.id}")

    elif args.command == "delete":
        catalog.delete_song(args.id)
        print(f"deleted: {args.id}")

    elif args.command == "import":
        preview = catalog.preview_import(read_csv_file(args.csv_path))
        if not preview.parsed.songs:
            print("No se encontraron canciones válidas en el archivo CSV")
            return 0
        if not preview.new_songs:
            print("Todas las canciones del CSV ya existen en la base de datos")
            return 0
        if not args.yes and not _confirm_import(preview):
            print("Importación cancelada")
            return 0

        report = catalog.apply_import(preview)
        print(json.dumps(report.to_dict(), ensure_ascii=False, indent=2))
        if webhook:
            send_discord(webhook, build_import_message(report))

    elif args.command == "export":
        catalog.set_filters(_query_from_args(args))
        content = catalog.export_csv()
        out_path = args.out or export_filename(date.today())
        with open(out_path, "w", encoding="utf-8") as file_obj:
            file_obj.write(content)
        print(f"exported: {out_path}")

    elif args.command == "stats":
        print(json.dumps(catalog.stats(), ensure_ascii=False, indent=2))

    elif args.command == "backup":
        with open(args.out, "w", encoding="utf-8") as file_obj:
            json.dump(catalog.backup(now_iso()), file_obj, ensure_ascii=False, indent=2)
            file_obj.write("\n")
        print(f"backup: {args.out}")

    return 0


def main(argv=None) -> int:
    """
    曲カタログ CLI のメイン処理。

    以下の処理を順序実行する:
    1. settings.yaml を読み込む
    2. Firestore の初期化を開始し、完了を待つ
    3. 旧ローカルストアが残っていれば一度だけ移行する
    4. 全曲を読み込み、サブコマンドを実行する
    環境変数:
    - SETTINGS_PATH: settings.yaml のパス(デフォルト: "settings.yaml")
    - FIRESTORE_API_KEY / FIRESTORE_ID_TOKEN: Firestore 認証情報(オプション)
    - DISCORD_WEBHOOK_URL: 取り込み結果の通知先(オプション)
    Returns:
        終了コード。CatalogError や入出力エラー発生時は 1。
    """
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args.settings)
    except (OSError, yaml.YAMLError, CatalogError) as e:
        print(f"設定の読み込みに失敗しました: {e}", file=sys.stderr)
        return 1

    setup_logging(settings.log_level)

    store = FirestoreSongStore(settings.firestore)
    store.start()
    catalog = SongCatalog(
        store,
        legacy=LegacySongStore(settings.legacy_store_path),
        ready_timeout=READY_TIMEOUT,
    )

    try:
        return run_command(args, settings, catalog)
    except (CatalogError, ValueError, OSError) as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
