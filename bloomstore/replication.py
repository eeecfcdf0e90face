import os
import shutil
import logging

from minio import Minio, S3Error

logger = logging.getLogger(__name__)

SNAPSHOT_PREFIX = 'records'
SNAPSHOT_SUFFIX = 'run'


def to_file_name(version):
    return f'{SNAPSHOT_PREFIX}.{version}.{SNAPSHOT_SUFFIX}'


def parse_file_name(raw_file_name):
    # returns None for anything that is not a snapshot file
    s = os.path.basename(raw_file_name).split('.')
    if len(s) != 3 or s[0] != SNAPSHOT_PREFIX or s[2] != SNAPSHOT_SUFFIX or not s[1].isdigit():
        return None
    return int(s[1])


def read_key(filename):
    with open(filename, 'r') as f:
        return f.read().strip()


def remove_local_snapshots(src_dir_path):
    for file_name in os.listdir(src_dir_path):
        if parse_file_name(file_name) is not None:
            os.remove(os.path.join(src_dir_path, file_name))


# abstract class
class Replica:
    def __init__(self, src_dir_path):
        self.src_dir_path = str(src_dir_path)

    def put(self, filename):
        raise NotImplementedError

    def get(self, filename):
        raise NotImplementedError

    def versions(self):
        raise NotImplementedError

    def remove(self, filename):
        raise NotImplementedError

    def destroy(self):
        raise NotImplementedError

    def latest_version(self):
        versions = self.versions()
        return versions[-1] if versions else None

    def gc(self):
        # keep only the latest snapshot
        versions = self.versions()
        for version in versions[:-1]:
            self.remove(to_file_name(version))

    def restore(self, version=None):
        '''
        Replace the local snapshot files with snapshot `version` (latest if None).
        Returns the restored version, or None if the replica does not have it.
        '''
        if version is None:
            version = self.latest_version()
            if version is None:
                return None
        elif version not in self.versions():
            logger.warning('snapshot version %d not found in replica', version)
            return None

        os.makedirs(self.src_dir_path, exist_ok=True)
        remove_local_snapshots(self.src_dir_path)
        self.get(to_file_name(version))
        logger.info('restored snapshot version %d', version)
        return version


class PathReplica(Replica):
    def __init__(self, src_dir_path, remote_dir_path):
        super().__init__(src_dir_path)

        self.remote_dir_path = str(remote_dir_path)
        os.makedirs(self.remote_dir_path, exist_ok=True)

    def put(self, filename):
        # using os.path.basename to be sure
        filename = os.path.basename(filename)
        shutil.copy(
            os.path.join(self.src_dir_path, filename),
            os.path.join(self.remote_dir_path, filename)
        )
        logger.info('pushed %s to %s', filename, self.remote_dir_path)

    def get(self, filename):
        filename = os.path.basename(filename)
        shutil.copy(
            os.path.join(self.remote_dir_path, filename),
            os.path.join(self.src_dir_path, filename)
        )

    def versions(self):
        if not os.path.isdir(self.remote_dir_path):
            return []
        versions = [parse_file_name(f) for f in os.listdir(self.remote_dir_path)]
        return sorted(v for v in versions if v is not None)

    def remove(self, filename):
        os.remove(os.path.join(self.remote_dir_path, os.path.basename(filename)))

    def destroy(self):
        shutil.rmtree(self.remote_dir_path, ignore_errors=True)


class MinioReplica(Replica):
    def __init__(self, src_dir_path, bucket, address='localhost:9000', access_key_fname='access.key',
                 secret_key_fname='secret.key', minio_client=None):
        super().__init__(src_dir_path)

        self.bucket = bucket
        self.client = minio_client if minio_client else Minio(address, read_key(access_key_fname),
                                                              read_key(secret_key_fname), secure=False)

        if not self.client.bucket_exists(self.bucket):
            self.client.make_bucket(self.bucket)

    def put(self, filename):
        filename = os.path.basename(filename)
        self.client.fput_object(
            self.bucket, filename,
            os.path.join(self.src_dir_path, filename)
        )
        logger.info('pushed %s to bucket %s', filename, self.bucket)

    def get(self, filename):
        filename = os.path.basename(filename)
        self.client.fget_object(
            self.bucket, filename,
            os.path.join(self.src_dir_path, filename)
        )

    def versions(self):
        versions = [parse_file_name(o.object_name) for o in self.client.list_objects(self.bucket)]
        return sorted(v for v in versions if v is not None)

    def remove(self, filename):
        try:
            self.client.remove_object(self.bucket, os.path.basename(filename))
        except S3Error:
            # already gone
            logger.warning('could not remove %s from bucket %s', filename, self.bucket)

    def destroy(self):
        for o in self.client.list_objects(self.bucket):
            self.client.remove_object(self.bucket, o.object_name)
        self.client.remove_bucket(self.bucket)
