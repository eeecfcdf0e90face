from bloomstore.common.bloom import BloomFilter, NewFilter, MAX_FILTER_SIZE, murmur64
