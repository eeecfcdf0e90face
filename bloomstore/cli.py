import sys
import csv
import signal
import logging
from argparse import ArgumentParser

from bloomstore.common.bloom import NewFilter
from bloomstore.common.errors import BloomFilterError, ElementNotFound, RegistryError
from bloomstore.registry import FilterRegistry
from bloomstore.replication import PathReplica


def write_exit_msg():
    if sys.stdout.isatty():
        sys.stdout.write('Use q or Ctrl-D to exit.\n')
        sys.stdout.flush()


def signal_handler(sig, frame):
    write_exit_msg()


def write_line(line):
    sys.stdout.write(line)
    sys.stdout.write('\n')
    if sys.stdout.isatty():
        sys.stdout.flush()


def parse(fd, registry: FilterRegistry, owner: bytes):
    csv_reader = csv.reader(fd, delimiter=' ', quotechar='"')
    for row in csv_reader:
        if not row:
            continue
        try:
            op = row[0]
            if op == 'i':
                registry.init(owner, NewFilter(row[1], int(row[2]), int(row[3])))
                write_line('ok')
            elif op == 'a':
                changed = registry.add(owner, row[1], row[2].encode())
                write_line('new' if changed else 'exists')
            elif op == 'c':
                if len(row) > 3:
                    filter_owner, name, element = row[1].encode(), row[2], row[3]
                else:
                    filter_owner, name, element = owner, row[1], row[2]
                try:
                    registry.check(owner, filter_owner, name, element.encode())
                    write_line('maybe')
                except ElementNotFound:
                    write_line('no')
            elif op == 's':
                f = registry.get(owner, owner, row[1])
                write_line(f'{f.name} m={f.m} k={f.k} n={f.n} fpr={f.false_positive_rate}')
            elif op == 'l':
                for f in registry.list(owner, owner):
                    write_line(f.name)
            elif op == 'q':
                return
            else:
                sys.stderr.write('malformed command.\n')
        except (BloomFilterError, RegistryError) as e:
            sys.stderr.write(f'{e}\n')
        except (IndexError, ValueError):
            sys.stderr.write('malformed command.\n')


def main(argv=None):
    signal.signal(signal.SIGINT, signal_handler)

    parser = ArgumentParser(prog='bloomstore')
    parser.add_argument('-f', type=str, help='path to input file')
    parser.add_argument('-d', type=str, help='path to data directory', default='./data')
    parser.add_argument('--owner', type=str, help='caller identity', required=True)
    parser.add_argument('--replica-dir', type=str, help='directory to replicate snapshots to', default=None)
    parser.add_argument('--log-level', type=str, help='logging level', default='WARNING')

    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log_level.upper(), format='%(asctime)s %(name)s %(levelname)s %(message)s')

    replica = PathReplica(args.d, args.replica_dir) if args.replica_dir else None
    registry = FilterRegistry(data_dir=args.d, replica=replica)

    write_exit_msg()

    try:
        if args.f:
            with open(args.f, 'r') as fd:
                parse(fd, registry, args.owner.encode())
        else:
            parse(sys.stdin, registry, args.owner.encode())
    finally:
        registry.close()


if __name__ == '__main__':
    main()
