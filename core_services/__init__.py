"""Supporting services that sit beside the pipeline"""
