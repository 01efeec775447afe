from __future__ import annotations
import argparse, json, sys
from triage import Engine
from triage.config import CATEGORIES, DEFAULT_DSN, PRIORITIES, SORT_KEYS
from triage.loader import TermsLoadError

def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Search-term triage report (Engine-backed)")
    p.add_argument("--terms", required=True, help="JSON array of {term, count}")
    p.add_argument("--db", default=DEFAULT_DSN, help='Snapshot store DSN ("sqlite:///path" or "memory://")')
    p.add_argument("--local", action="store_true", help="Ignore stored overrides")
    p.add_argument("--search", default="", help="Substring filter on the raw term")
    p.add_argument("--priority", choices=PRIORITIES, default=None)
    p.add_argument("--category", choices=CATEGORIES, default=None)
    p.add_argument("--status", choices=["completed", "pending"], default=None)
    p.add_argument("--sort", choices=SORT_KEYS, default="impact")
    p.add_argument("-n", "--limit", type=int, default=25, help="Rows to print (0 = none)")
    p.add_argument("--csv", default=None, help="Write the cleanup report to this path")
    p.add_argument("--sql", default=None, help="Write the UPDATE script to this path")
    p.add_argument("--json", action="store_true", help="Emit JSON rows")
    p.add_argument("--verbose", action="store_true")

    args = p.parse_args(argv)

    eng = Engine()
    try:
        try:
            eng.load(args.terms, db_dsn=None if args.local else args.db, verbose=args.verbose)
        except TermsLoadError as exc:
            print(f"error: {exc}", file=sys.stderr)
            return 1

        rows = eng.rows(search=args.search, priority=args.priority, category=args.category,
                        status=args.status, sort=args.sort)

        if args.json:
            print(json.dumps([e.to_dict() for e in rows[:args.limit or None]], ensure_ascii=False, indent=2))
        elif args.limit:
            s = eng.stats()
            print(f"terms={s['total_terms']} critical={s['critical']} formatting={s['formatting']} "
                  f"impact={s['total_impact']} completed={s['completed']} sync={eng.sync_status}")
            if not rows:
                print("(no matches)")
            else:
                print("ID    Count  Priority  Category            Term                            Proposed")
                for e in rows[:args.limit]:
                    r = e.record
                    proposed = e.proposed_term if e.needs_change else "-"
                    print(f"{r.id:<5} {r.occurrence_count:<6} {r.priority:<9} {e.categories[0]:<19} "
                          f"{r.raw_term[:31]:<31} {proposed}")
                if len(rows) > args.limit:
                    print(f"... {len(rows) - args.limit} more")

        if args.csv:
            with open(args.csv, "w", encoding="utf-8", newline="") as f:
                f.write(eng.export_csv(rows))
            print(f"wrote {args.csv}", file=sys.stderr)
        if args.sql:
            with open(args.sql, "w", encoding="utf-8") as f:
                f.write(eng.export_sql(rows))
            print(f"wrote {args.sql}", file=sys.stderr)
        return 0
    finally:
        eng.shutdown()

if __name__ == "__main__":
    raise SystemExit(main())
