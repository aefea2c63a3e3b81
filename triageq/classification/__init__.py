"""Classification - classifier, filter engine, ranker, visual flags, suggested actions"""
