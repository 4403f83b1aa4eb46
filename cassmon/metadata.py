APP_NAME = "cassmon"
VERSION = "1.0.0"
DESCRIPTION = "Get metrics of Cassandra Process Remotely"
