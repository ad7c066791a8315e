"""A small in-memory byte cache whose entries expire after a fixed interval."""