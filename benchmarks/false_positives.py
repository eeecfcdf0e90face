'''
Compares the measured false positive rate of a filter with the estimate it stores, and times add/check.
Run from the repo root: python benchmarks/false_positives.py
'''

import sys
import time

sys.path.append('.')

from bloomstore import BloomFilter, NewFilter, MAX_FILTER_SIZE


class Timer:
    def __enter__(self):
        self.start = time.perf_counter()
        return self

    def __exit__(self, *args):
        self.interval = time.perf_counter() - self.start


def measure(m, k, n_added, n_probes=100_000):
    f = BloomFilter(NewFilter(f'bench-{m}-{k}', m, k))

    with Timer() as add_timer:
        for i in range(n_added):
            f.add(f'in-{i}'.encode())

    fp_count = 0
    with Timer() as check_timer:
        for i in range(n_probes):
            if f'out-{i}'.encode() in f:
                fp_count += 1

    for i in range(n_added):
        if f'in-{i}'.encode() not in f:
            print(f'in-{i} was added but the filter says it is not there (very bad)')

    return {
        'm': m, 'k': k, 'added': n_added, 'n': f.n,
        'estimated': f.false_positive_rate,
        'measured': fp_count / n_probes,
        'add_us': add_timer.interval / n_added * 1e6,
        'check_us': check_timer.interval / n_probes * 1e6,
    }


def main():
    print('m\tk\tadded\tn\testimated\tmeasured\tadd_us\tcheck_us')
    for m in [1_000, 2_000, MAX_FILTER_SIZE]:
        for k in [2, 4, 8, 16]:
            for n_added in [m // 20, m // 10, m // 5]:
                r = measure(m, k, n_added)
                print(f"{r['m']}\t{r['k']}\t{r['added']}\t{r['n']}\t{r['estimated']:.5f}\t{r['measured']:.5f}\t"
                      f"{r['add_us']:.2f}\t{r['check_us']:.2f}")


if __name__ == '__main__':
    main()
