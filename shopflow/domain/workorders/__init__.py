"""Work order domain - work order records, totals and status synchronization"""
