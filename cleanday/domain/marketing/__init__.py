"""Marketing domain: client campaigns and inbound prospects"""
