"""Tool handlers for workspace, check, audit and inspect, and a gopls proxy."""